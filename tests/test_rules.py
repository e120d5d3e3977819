import json
from pathlib import Path

import pytest

from mocklite.core import CmpErr, DbErr
from mocklite.rules import ld_db, prs_rl, sv_db


def test_prs_rl_ok(users_rule):
    rl = prs_rl(users_rule())
    assert rl.request.method == "GET"
    assert rl.responses[1].is_default is True
    assert rl.responses[0].filter.header == {"mode": "keyword", "X-Debug": "true"}


@pytest.mark.parametrize("d", [[], {"responses": [{"is_default": True, "response": {}}]}])
def test_prs_rl_not_a_rule(d):
    with pytest.raises(CmpErr):
        prs_rl(d)


@pytest.mark.parametrize(
    "kw",
    [
        {"request": {"path": "", "method": "GET"}},
        {"responses": []},
        {"responses": [{"filter": {}, "response": {}}]},
        {"responses": [{"is_default": True, "response": {}}, {"is_default": True, "response": {}}]},
        {"responses": [{"is_default": True, "response": {}}, {"response": {}}]},
        {"weight": {"g": {"a": "lots"}}},
        {"responses": [{"is_default": True, "response": {"header": {"X-Name": "中"}}}]},
        {"responses": [{"is_default": True, "response": {"header": {"X-中": "a"}}}]},
    ],
)
def test_prs_rl_bad(users_rule, kw):
    with pytest.raises(CmpErr):
        prs_rl(users_rule(**kw))


def test_prs_rl_latin1_header_ok(users_rule):
    rl = prs_rl(users_rule(responses=[{"is_default": True, "response": {"header": {"X-Name": "café"}}}]))
    assert rl.responses[0].response.header == {"X-Name": "café"}


def test_db_roundtrip(tmp_path: Path):
    p = tmp_path / "x" / "db.json"
    assert ld_db(p) == []
    sv_db(p, [{"id": "a"}])
    assert json.loads(p.read_text(encoding="utf-8")) == {"rls": [{"id": "a"}]}
    assert ld_db(p) == [{"id": "a"}]


@pytest.mark.parametrize("txt", ["{", "[]", '{"rls": {}}', '{"rls": [1]}'])
def test_db_bad(tmp_path: Path, txt):
    p = tmp_path / "db.json"
    p.write_text(txt, encoding="utf-8")
    with pytest.raises(DbErr):
        ld_db(p)
