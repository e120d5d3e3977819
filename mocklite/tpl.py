"""Response templates.

A response body is either a static byte blob or a Jinja2 template. Templates
are executed in a sandbox against a render context with these names:

- Context: rule variables
- Weight: this request's weight draws (group -> variant)
- Header: request headers; keys are lower-cased whatever case the client
  sent, so "X-Id: 7" is read as {{ Header['x-id'] }}
- Query: query arguments
- Form: urlencoded form fields
- Json: top-level fields of a JSON object body

Missing request data gives empty maps. Referencing an undefined name is a
render error; use Query.get('q', '') for optional values.

Functions available in every template: uuid(), timestamp(precision),
date(layout), plus(value, n).
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Mapping

from jinja2 import StrictUndefined, Template, TemplateError
from jinja2.sandbox import ImmutableSandboxedEnvironment, SandboxedEnvironment

from .core import CmpErr, RndErr, Rq, Rs

logger = logging.getLogger(__name__)

UNSUP = "unsupported type"

_TS_DIV = {"mcs": 1_000, "ms": 1_000_000, "sec": 1_000_000_000}


def gen_uuid() -> str:
    """Random UUID4 string."""
    return str(uuid.uuid4())


def cur_ts(precision: str = "") -> int:
    """Current unix timestamp.

    Args:
        precision: "mcs", "ms", "sec"; anything else means nanoseconds.

    Returns:
        Truncated timestamp.
    """
    return time.time_ns() // _TS_DIV.get(precision, 1)


def fmt_date(layout: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format current local time with a strftime layout."""
    return datetime.now().strftime(layout)


def _num(v: Any) -> int | float | None:
    """Classify a numeric-like value; None when unsupported."""
    if isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return v
    if isinstance(v, str):
        try:
            return int(v)
        except ValueError:
            pass
        try:
            return float(v)
        except ValueError:
            return None
    return None


def plus(v: Any, i: Any = 1) -> int | float | str:
    """Add i to a numeric-like value.

    Args:
        v: int, float or numeric string.
        i: Increment (int or float).

    Returns:
        Sum, or UNSUP marker for any other input. Never raises.
    """
    a = _num(v)
    b = i if isinstance(i, (int, float)) and not isinstance(i, bool) else None
    if a is None or b is None:
        return UNSUP
    return a + b


def mk_fns(extra: Mapping[str, Callable[..., Any]] | None = None) -> Mapping[str, Callable[..., Any]]:
    """Build an immutable template function table.

    Args:
        extra: Additional functions.

    Returns:
        Read-only mapping name -> function.

    Raises:
        CmpErr: If an extra name is already taken.
    """
    fns: dict[str, Callable[..., Any]] = {
        "uuid": gen_uuid,
        "timestamp": cur_ts,
        "date": fmt_date,
        "plus": plus,
    }
    for k, f in (extra or {}).items():
        if k in fns:
            raise CmpErr(f"func named {k} was exists")
        fns[k] = f
    return MappingProxyType(fns)


def mk_env(fns: Mapping[str, Callable[..., Any]] | None = None) -> SandboxedEnvironment:
    """Create a sandboxed Jinja2 environment with the given functions.

    The sandbox is immutable: templates cannot mutate context values.
    """
    env = ImmutableSandboxedEnvironment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=True)
    env.globals.update(fns if fns is not None else FNS)
    return env


FNS = mk_fns()
DFL_ENV = mk_env(FNS)


@dataclass(frozen=True)
class RndCtx:
    """Per-request render context."""

    Context: Mapping[str, Any] = field(default_factory=dict)
    Weight: Mapping[str, str] = field(default_factory=dict)
    Header: Mapping[str, str] = field(default_factory=dict)
    Query: Mapping[str, str] = field(default_factory=dict)
    Form: Mapping[str, str] = field(default_factory=dict)
    Json: Mapping[str, Any] = field(default_factory=dict)

    def asd(self) -> dict[str, Any]:
        """Convert to template variables."""
        return {
            "Context": self.Context,
            "Weight": self.Weight,
            "Header": self.Header,
            "Query": self.Query,
            "Form": self.Form,
            "Json": self.Json,
        }


def mk_ctx(rq: Rq, ctx: Mapping[str, Any] | None, wt: Mapping[str, str] | None) -> RndCtx:
    """Assemble render context from a request.

    Args:
        rq: Current request.
        ctx: Rule variables.
        wt: Weight draws for this request.

    Returns:
        Fresh context.
    """
    return RndCtx(
        Context=ctx or {},
        Weight=wt or {},
        Header=dict(rq.hdr),
        Query=dict(rq.qry),
        Form=rq.form(),
        Json=rq.json(),
    )


@dataclass(frozen=True)
class Tpl:
    """Compiled response template.

    Args:
        st: Status code.
        hdr: Static headers.
        bd: Static body (also the template source when is_tpl).
        is_tpl: Render bd as a template.
        is_bin: Body came base64-encoded.
        tpl: Compiled template (is_tpl only).
    """

    st: int
    hdr: Mapping[str, str]
    bd: bytes
    is_tpl: bool = False
    is_bin: bool = False
    tpl: Template | None = field(default=None, compare=False, repr=False)

    def apply(self, rs: Rs) -> None:
        """Copy status and headers into the response."""
        rs.st = self.st
        for k, v in self.hdr.items():
            rs.set_hdr(k, v)

    def exec(self, rc: RndCtx) -> bytes:
        """Execute the template against a context.

        Returns:
            UTF-8 encoded output.

        Raises:
            RndErr: On any template execution or encoding failure.
        """
        if self.tpl is None:
            return self.bd
        try:
            return self.tpl.render(rc.asd()).encode("utf-8")
        except TemplateError as e:
            raise RndErr(str(e) or type(e).__name__) from e
        except (TypeError, ValueError, ArithmeticError, LookupError, RecursionError) as e:
            raise RndErr(f"{type(e).__name__}: {e}") from e

    def rndr(
        self,
        rq: Rq,
        rs: Rs,
        ctx: Mapping[str, Any] | None = None,
        wt: Mapping[str, str] | None = None,
    ) -> None:
        """Populate the response.

        Status and headers are applied before rendering so they stay in place
        when rendering fails.

        Raises:
            RndErr: If the template fails.
        """
        self.apply(rs)
        if not self.is_tpl:
            rs.set_bd(self.bd)
            return
        rs.set_bd(b"")
        try:
            rc = mk_ctx(rq, ctx, wt)
        except (ValueError, RecursionError) as e:
            raise RndErr(f"bad request data: {e}") from e
        rs.set_bd(self.exec(rc))


def mk_tpl(d: Mapping[str, Any], env: SandboxedEnvironment | None = None) -> Tpl:
    """Compile a response template definition.

    Args:
        d: Mapping with is_template, header, status_code, body,
            base64encoded_body.
        env: Jinja2 environment (default: DFL_ENV).

    Returns:
        Compiled template.

    Raises:
        CmpErr: On bad base64 or template syntax.
    """
    b64 = d.get("base64encoded_body") or ""
    is_bin = bool(b64)
    if is_bin:
        try:
            bd = base64.b64decode(b64, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.error("failed to decode base64 body: %s", e)
            raise CmpErr(f"bad base64encoded_body: {e}") from e
    else:
        bd = str(d.get("body") or "").encode("utf-8")

    st = int(d.get("status_code") or 200)
    hdr = {str(k): str(v) for k, v in (d.get("header") or {}).items()}
    is_tpl = bool(d.get("is_template"))
    if not is_tpl:
        return Tpl(st=st, hdr=MappingProxyType(hdr), bd=bd, is_bin=is_bin)

    try:
        src = bd.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CmpErr("template body must be UTF-8 text") from e
    try:
        t = (env or DFL_ENV).from_string(src)
    except TemplateError as e:
        logger.error("failed to parse template: %s", e)
        raise CmpErr(f"bad template: {e}") from e
    return Tpl(st=st, hdr=MappingProxyType(hdr), bd=bd, is_tpl=True, is_bin=is_bin, tpl=t)
