"""Dry-run CLI: serve requests from a file against a rule db."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from .core import MkErr
from .io import prs, rdln
from .mgr import RlMgr, mock_do
from .rep import mk_row, wr_csv, wr_jsonl

logger = logging.getLogger(__name__)


def _ap() -> argparse.ArgumentParser:
    """Build argparse parser."""
    p = argparse.ArgumentParser(prog="mocklite", add_help=True)
    p.add_argument("--rules", dest="rls", required=True, help="rules db path (json)")
    p.add_argument("--in", dest="inp", required=True, help="input file path")
    p.add_argument("--fmt", dest="fmt", default="jsonl", choices=["jsonl", "raw"])
    p.add_argument("--out", dest="outp", required=True, help="output file path")
    p.add_argument("--ofmt", dest="ofmt", default="jsonl", choices=["jsonl", "csv"])
    return p


def run_cli(argv: list[str] | None = None) -> int:
    """Run CLI.

    Args:
        argv: Arguments list without program name.

    Returns:
        Exit code (0 ok).

    Raises:
        SystemExit: On rule db, input or output errors.
    """
    a = _ap().parse_args(argv)
    rp = Path(a.rls)
    if not rp.exists():
        raise SystemExit(f"err: no rules db: {rp}")

    rows: list[dict[str, Any]] = []
    try:
        mgr = RlMgr(rp)
        for ln in rdln(Path(a.inp)):
            rq = prs(a.fmt, ln)
            rows.append(mk_row(rq, mock_do(mgr, rq)))
        op = Path(a.outp)
        if a.ofmt == "jsonl":
            wr_jsonl(op, rows)
        else:
            wr_csv(op, rows)
    except MkErr as e:
        raise SystemExit(f"err: {e}") from e
    logger.info("served %d requests", len(rows))
    return 0
