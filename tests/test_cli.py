import csv
import json
from pathlib import Path

import pytest

from mocklite.cli import run_cli
from mocklite.rules import sv_db


def _db(tmp_path: Path, users_rule) -> Path:
    p = tmp_path / "db.json"
    sv_db(p, [users_rule(id="u")])
    return p


def test_cli_jsonl(tmp_path: Path, users_rule):
    inp = tmp_path / "in.jsonl"
    inp.write_text(
        '{"method": "GET", "path": "/users/1", "header": {"X-Debug": "true"}}\n'
        '{"method": "GET", "path": "/users/1"}\n'
        '{"method": "GET", "path": "/x"}\n',
        encoding="utf-8",
    )
    out = tmp_path / "out.jsonl"
    assert run_cli(["--rules", str(_db(tmp_path, users_rule)), "--in", str(inp), "--out", str(out)]) == 0
    rows = [json.loads(x) for x in out.read_text(encoding="utf-8").splitlines()]
    assert [r["body"] for r in rows[:2]] == ["Hello Alice", '{"ok":true}']
    assert json.loads(rows[2]["body"])["code"] == 400


def test_cli_raw_csv(tmp_path: Path, users_rule):
    inp = tmp_path / "in.txt"
    inp.write_text("GET /users/7 HTTP/1.1\n", encoding="utf-8")
    out = tmp_path / "out.csv"
    run_cli(["--rules", str(_db(tmp_path, users_rule)), "--in", str(inp), "--fmt", "raw", "--out", str(out), "--ofmt", "csv"])
    with out.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["st"] == "200"
    assert rows[0]["ct"] == "application/json"


def test_cli_missing_db(tmp_path: Path):
    with pytest.raises(SystemExit):
        run_cli(["--rules", str(tmp_path / "no.json"), "--in", "x", "--out", "y"])
