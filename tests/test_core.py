import json

from mocklite.core import Rq, Rs, env_b


def test_env_b_no_match_shape():
    assert env_b(400, "no rule match your request") == b'{"code":400,"err_msg":"no rule match your request"}'


def test_env_b_data():
    assert json.loads(env_b(200, data={"id": "x"})) == {"code": 200, "data": {"id": "x"}}


def test_rq_mk_normalizes():
    rq = Rq.mk("GET", "/a", hdr={"X-Debug": "1"}, qs="a=1&a=2&b=", bd="x")
    assert rq.hdr == {"x-debug": "1"}
    assert rq.qry == {"a": "1", "b": ""}
    assert rq.bd == b"x"


def test_rq_form_and_json():
    f = Rq.mk("POST", "/", hdr={"Content-Type": "application/x-www-form-urlencoded"}, bd="u=bob&n=3")
    assert f.form() == {"u": "bob", "n": "3"}
    assert f.json() == {}

    j = Rq.mk("POST", "/", hdr={"content-type": "application/json; charset=utf-8"}, bd='{"n": 3}')
    assert j.json() == {"n": 3}
    assert j.form() == {}


def test_rq_bad_json_is_empty():
    assert Rq.mk("POST", "/", hdr={"content-type": "application/json"}, bd="{").json() == {}
    assert Rq.mk("POST", "/", hdr={"content-type": "application/json"}, bd="[1]").json() == {}


def test_rs_env_replaces_content_type():
    rs = Rs(hdr={"content-type": "text/plain"})
    rs.env(400, "boom")
    assert rs.hdr == {"Content-Type": "application/json"}
    assert json.loads(bytes(rs.bd)) == {"code": 400, "err_msg": "boom"}


def test_rq_deeply_nested_json_is_empty():
    bd = '{"a":' + "[" * 100000 + "]" * 100000 + "}"
    assert Rq.mk("POST", "/", hdr={"content-type": "application/json"}, bd=bd).json() == {}
