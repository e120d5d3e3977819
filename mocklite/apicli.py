"""CLI runner for mocklite API."""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn

from .api import mk_api
from .cfg import Settings, setup_lg


def _ap(s: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mocklite-api", add_help=True)
    p.add_argument("--host", default=s.host)
    p.add_argument("--port", default=s.port, type=int)
    p.add_argument("--db", default=s.db, help="rules db path (json)")
    p.add_argument("--log-level", dest="lvl", default=s.log_level)
    return p


def run_api(argv: list[str] | None = None) -> int:
    """Run API server.

    Args:
        argv: Arg list.

    Returns:
        Exit code.
    """
    a = _ap(Settings()).parse_args(argv)
    setup_lg(a.lvl)
    app = mk_api(Path(a.db))
    uvicorn.run(app, host=a.host, port=a.port, log_level=a.lvl.lower())
    return 0
