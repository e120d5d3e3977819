"""Dry-run reports."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Iterable, Mapping

from .core import MkErr, Rq, Rs


class OutErr(MkErr):
    """Raised when report cannot be written."""


def mk_row(rq: Rq, rs: Rs) -> dict[str, Any]:
    """Report row for one served request."""
    return {
        "method": rq.mt,
        "path": rq.pth,
        "st": rs.st,
        "ct": next((v for k, v in rs.hdr.items() if k.lower() == "content-type"), ""),
        "body": bytes(rs.bd).decode("utf-8", errors="replace"),
    }


def wr_jsonl(p: Path, rows: Iterable[Mapping[str, Any]]) -> None:
    """Write report as JSON Lines.

    Raises:
        OutErr: On write errors.
    """
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8") as f:
            for r in rows:
                f.write(json.dumps(dict(r), ensure_ascii=False) + "\n")
    except OSError as e:
        raise OutErr(f"cannot write: {p}") from e


def wr_csv(p: Path, rows: Iterable[Mapping[str, Any]]) -> None:
    """Write report as CSV (nothing is written for no rows).

    Raises:
        OutErr: On write errors.
    """
    rows = list(rows)
    if not rows:
        return
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8", newline="") as f:
            w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
            w.writeheader()
            w.writerows(rows)
    except OSError as e:
        raise OutErr(f"cannot write: {p}") from e
