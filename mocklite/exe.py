"""Compiled rules and regulation selection."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Pattern

from jinja2.sandbox import SandboxedEnvironment

from .core import CmpErr, NoMtchErr, Rq, Rs
from .dice import Pkr, mk_pkr
from .flt import Flt, flt, mk_flt
from .rules import RlIn, prs_rl
from .tpl import Tpl, mk_tpl

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rgl:
    """Compiled response regulation.

    Args:
        dflt: Default (fallback) regulation flag.
        flt: Filter; None passes.
        tpl: Response template.
    """

    dflt: bool
    flt: Flt | None
    tpl: Tpl


@dataclass(frozen=True)
class Exe:
    """Compiled rule.

    Args:
        rid: Rule id.
        mt: HTTP method.
        pth: Compiled path pattern.
        ctx: Variables exposed to templates.
        pkr: Weight groups.
        rgls: Regulations in configuration order.
        raw: Validated definition the rule was compiled from.
    """

    rid: str
    mt: str
    pth: Pattern[str]
    ctx: Mapping[str, Any] = field(default_factory=dict)
    pkr: Pkr = field(default_factory=Pkr)
    rgls: tuple[Rgl, ...] = ()
    raw: RlIn | None = field(default=None, compare=False, repr=False)

    def mtch(self, path: str, method: str) -> bool:
        """Check method (exact) and path (pattern search)."""
        if method != self.mt:
            return False
        return self.pth.search(path) is not None

    def fnd_reg(self, rq: Rq) -> Rgl:
        """Select the regulation for a request.

        Regulations are tried in configuration order and the first passing
        one wins; a regulation without filter always passes. The default is
        used when nothing passes.

        Raises:
            NoMtchErr: If nothing resolves (no default).
        """
        dfl: Rgl | None = None
        for r in self.rgls:
            if r.dflt:
                dfl = r
            if flt(r.flt, rq):
                return r
        if dfl is None:
            raise NoMtchErr("missing matched response regulation")
        return dfl

    def rndr(self, rgl: Rgl, rq: Rq, rs: Rs) -> None:
        """Render a regulation with fresh weight draws.

        Raises:
            RndErr: If the template fails.
        """
        wt = self.pkr.dice_all() if rgl.tpl.is_tpl else {}
        rgl.tpl.rndr(rq, rs, self.ctx, wt)


def cmp_rl(
    d: Any,
    rid: str | None = None,
    env: SandboxedEnvironment | None = None,
    rb: Callable[[int], int] | None = None,
) -> Exe:
    """Validate and compile a rule definition.

    Args:
        d: Raw definition (dict) or RlIn.
        rid: Id override (defaults to definition id).
        env: Jinja2 environment for templates.
        rb: Random source for weight groups.

    Returns:
        Compiled rule.

    Raises:
        CmpErr: On any validation or compile failure.
    """
    rl = prs_rl(d)
    if rid is not None:
        rl = rl.model_copy(update={"id": rid})
    try:
        pth = re.compile(rl.request.path)
    except re.error as e:
        raise CmpErr(f"bad path pattern: {e}") from e

    rgls: list[Rgl] = []
    for i, r in enumerate(rl.responses):
        try:
            f = mk_flt(r.filter.model_dump(exclude_none=True)) if r.filter is not None else None
            t = mk_tpl(r.response.model_dump(), env)
        except CmpErr as e:
            logger.error("failed to compile regulation %d of rule %r: %s", i, rl.id, e)
            raise CmpErr(f"responses.{i}: {e}") from e
        rgls.append(Rgl(dflt=r.is_default, flt=f, tpl=t))

    return Exe(
        rid=rl.id,
        mt=rl.request.method,
        pth=pth,
        ctx=MappingProxyType(dict(rl.context)),
        pkr=mk_pkr(rl.weight, rb),
        rgls=tuple(rgls),
        raw=rl,
    )
