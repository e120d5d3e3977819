"""I/O helpers and parsers for dry-run input lines.

Supports:
- JSON lines: {"method", "path", "header", "query", "body"}
- raw request lines: "GET /path?x=1"
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator
from urllib.parse import urlsplit

from .core import MkErr, Rq


class InpErr(MkErr):
    """Raised when input cannot be parsed."""


def rdln(p: Path) -> Iterator[str]:
    """Read non-empty lines from a UTF-8 text file.

    Args:
        p: Path to input file.

    Yields:
        Lines without trailing newline.

    Raises:
        InpErr: If file cannot be read as UTF-8.
    """
    try:
        with p.open("r", encoding="utf-8") as f:
            for ln in f:
                s = ln.rstrip("\n")
                if s.strip():
                    yield s
    except UnicodeDecodeError as e:
        raise InpErr("file must be UTF-8") from e
    except OSError as e:
        raise InpErr(f"cannot read: {p}") from e


def prs_raw(ln: str) -> Rq:
    """Parse a raw request line.

    Expected format: "METHOD TARGET [PROTOCOL]".

    Args:
        ln: Input line.

    Returns:
        Request without headers or body.

    Raises:
        InpErr: If the line has no target.
    """
    ps = ln.split()
    if len(ps) < 2:
        raise InpErr("bad raw line")
    u = urlsplit(ps[1])
    return Rq.mk(mt=ps[0], pth=u.path or "/", qs=u.query)


def prs_js(ln: str) -> Rq:
    """Parse a JSON request line.

    Args:
        ln: JSON object line.

    Returns:
        Request.

    Raises:
        InpErr: If the line is not an object with method and path.
    """
    try:
        d = json.loads(ln)
    except json.JSONDecodeError as e:
        raise InpErr("bad json line") from e
    if not isinstance(d, dict) or not d.get("method") or not d.get("path"):
        raise InpErr("json line needs method and path")
    q = d.get("query") or {}
    b = d.get("body") or ""
    if not isinstance(b, str):
        b = json.dumps(b, ensure_ascii=False)
    return Rq.mk(
        mt=str(d["method"]),
        pth=str(d["path"]),
        hdr=d.get("header") or {},
        qs=q if isinstance(q, dict) else str(q),
        bd=b,
    )


def prs(fmt: str, ln: str) -> Rq:
    """Dispatch parser by format.

    Args:
        fmt: "jsonl" or "raw".
        ln: Line.

    Returns:
        Parsed request.

    Raises:
        InpErr: If format is unsupported or parsing fails.
    """
    f = (fmt or "").lower().strip()
    if f == "jsonl":
        return prs_js(ln)
    if f == "raw":
        return prs_raw(ln)
    raise InpErr(f"bad fmt: {fmt!r}")
