"""Request filters.

A filter is made of up to three sub-filters: header, query and body. Each
sub-filter has a matching mode; a missing sub-filter always passes.

Header/query parameters format:
- "mode": one of always_true, exact, keyword, regular (default exact)
- any other key: request key -> expected value, keyword or pattern

Body parameters format:
- "mode": one of always_true, keyword, regular (required)
- "keyword": substring for keyword mode
- "regular": pattern for regular mode
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Pattern

from .core import CmpErr, Rq

MD_FLD = "mode"


class Md(str, Enum):
    """Filter matching mode."""

    ALW = "always_true"
    EXT = "exact"
    KWD = "keyword"
    REG = "regular"


def _md(v: object, dfl: Md | None) -> Md:
    if v is None:
        if dfl is None:
            raise CmpErr("missing filter mode")
        return dfl
    try:
        return Md(str(v))
    except ValueError as e:
        raise CmpErr(f"bad filter mode: {v!r}") from e


def _cre(p: str, k: str) -> Pattern[str]:
    try:
        return re.compile(p)
    except re.error as e:
        raise CmpErr(f"bad pattern for {k!r}: {e}") from e


@dataclass(frozen=True)
class KvFlt:
    """Per-key filter over headers or query arguments.

    Args:
        md: Mode.
        ps: Key -> expected value (exact) or keyword.
        rgs: Key -> compiled pattern (regular mode only).
    """

    md: Md
    ps: Mapping[str, str] = field(default_factory=dict)
    rgs: Mapping[str, Pattern[str]] = field(default_factory=dict)

    def flt(self, m: Mapping[str, str]) -> bool:
        """Check a key/value mapping.

        A configured key absent from the mapping fails in every mode except
        always_true.
        """
        if self.md is Md.ALW:
            return True
        if self.md is Md.EXT:
            return all(k in m and m[k] == v for k, v in self.ps.items())
        if self.md is Md.KWD:
            return all(k in m and v in m[k] for k, v in self.ps.items())
        if self.md is Md.REG:
            return all(k in m and r.search(m[k]) is not None for k, r in self.rgs.items())
        return False


def mk_kv(d: Mapping[str, str] | None, ci: bool = False) -> KvFlt | None:
    """Compile header or query sub-filter.

    Args:
        d: Parameters (None -> no sub-filter).
        ci: Lower-case keys (headers).

    Returns:
        Sub-filter or None.

    Raises:
        CmpErr: On bad mode or pattern.
    """
    if d is None:
        return None
    md = _md(d.get(MD_FLD), Md.EXT)
    ps: dict[str, str] = {}
    for k, v in d.items():
        if k == MD_FLD:
            continue
        if not isinstance(v, str):
            raise CmpErr(f"filter value for {k!r} must be a string")
        ps[k.lower() if ci else k] = v
    rgs = {k: _cre(v, k) for k, v in ps.items()} if md is Md.REG else {}
    return KvFlt(md=md, ps=ps, rgs=rgs)


@dataclass(frozen=True)
class BdyFlt:
    """Filter over the whole raw body.

    Args:
        md: Mode (exact is not supported).
        kw: Keyword for keyword mode.
        rg: Compiled pattern for regular mode.
    """

    md: Md
    kw: bytes = b""
    rg: Pattern[bytes] | None = None

    def flt(self, b: bytes) -> bool:
        if self.md is Md.ALW:
            return True
        if self.md is Md.KWD:
            return self.kw in b
        if self.md is Md.REG and self.rg is not None:
            return self.rg.search(b) is not None
        return False


def mk_bdy(d: Mapping[str, str] | None) -> BdyFlt | None:
    """Compile body sub-filter.

    Args:
        d: Parameters (None -> no sub-filter).

    Returns:
        Sub-filter or None.

    Raises:
        CmpErr: On missing/bad mode or missing keyword/pattern.
    """
    if d is None:
        return None
    md = _md(d.get(MD_FLD), None)
    if md is Md.EXT:
        raise CmpErr("body filter does not support exact mode")
    if md is Md.KWD:
        kw = d.get("keyword")
        if not isinstance(kw, str) or not kw:
            raise CmpErr("body keyword filter needs a keyword")
        return BdyFlt(md=md, kw=kw.encode("utf-8"))
    if md is Md.REG:
        p = d.get("regular")
        if not isinstance(p, str) or not p:
            raise CmpErr("body regular filter needs a pattern")
        try:
            rg = re.compile(p.encode("utf-8"))
        except re.error as e:
            raise CmpErr(f"bad body pattern: {e}") from e
        return BdyFlt(md=md, rg=rg)
    return BdyFlt(md=md)


@dataclass(frozen=True)
class Flt:
    """Composite filter: header AND query AND body, in that order."""

    hdr: KvFlt | None = None
    qry: KvFlt | None = None
    bdy: BdyFlt | None = None

    def flt(self, rq: Rq) -> bool:
        if self.hdr is not None and not self.hdr.flt(rq.hdr):
            return False
        if self.qry is not None and not self.qry.flt(rq.qry):
            return False
        if self.bdy is not None and not self.bdy.flt(rq.bd):
            return False
        return True


def mk_flt(d: Mapping[str, Mapping[str, str] | None] | None) -> Flt | None:
    """Compile a filter definition.

    Args:
        d: Mapping with optional "header", "query", "body" entries.

    Returns:
        Filter or None when d is None.
    """
    if d is None:
        return None
    return Flt(
        hdr=mk_kv(d.get("header"), ci=True),
        qry=mk_kv(d.get("query")),
        bdy=mk_bdy(d.get("body")),
    )


def flt(f: Flt | None, rq: Rq) -> bool:
    """Evaluate an optional filter; None passes."""
    return True if f is None else f.flt(rq)
