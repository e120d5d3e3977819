from pathlib import Path

from fastapi.testclient import TestClient

from mocklite.api import mk_api


def test_api_health(tmp_path: Path):
    c = TestClient(mk_api(tmp_path / "db.json"))
    r = c.get("/api/v1/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_api_unregistered_path():
    c = TestClient(mk_api())
    r = c.get("/nothing/here")
    assert r.headers["content-type"] == "application/json"
    assert r.content == b'{"code":400,"err_msg":"no rule match your request"}'


def test_api_create_and_mock(tmp_path: Path, users_rule):
    c = TestClient(mk_api(tmp_path / "db.json"))
    r = c.post("/api/v1/rule", json=users_rule())
    j = r.json()
    assert j["code"] == 200
    assert j["data"]["id"]

    r = c.get("/users/42", headers={"X-Debug": "true-value"})
    assert r.status_code == 200
    assert r.text == "Hello Alice"

    r = c.get("/users/42")
    assert r.content == b'{"ok":true}'
    assert r.headers["content-type"] == "application/json"


def test_api_create_bad(users_rule):
    c = TestClient(mk_api())
    r = c.post("/api/v1/rule", content=b"{", headers={"content-type": "application/json"})
    assert r.json()["code"] == 400

    r = c.post("/api/v1/rule", json=users_rule(responses=[{"is_default": False, "filter": {}, "response": {}}]))
    j = r.json()
    assert j["code"] == 400
    assert "default" in j["err_msg"]


def test_api_crud_cycle(users_rule):
    c = TestClient(mk_api())
    rid = c.post("/api/v1/rule", json=users_rule()).json()["data"]["id"]

    assert c.get(f"/api/v1/rule/{rid}").json()["data"]["request"]["method"] == "GET"

    r = c.patch(f"/api/v1/rule/{rid}", json={"context": {"name": "Bob"}})
    assert r.json()["code"] == 200
    assert c.get("/users/1", headers={"x-debug": "true"}).text == "Hello Bob"

    r = c.put(f"/api/v1/rule/{rid}", json=users_rule(request={"path": "^/u$", "method": "POST"}))
    assert r.json()["data"]["request"]["path"] == "^/u$"
    assert c.post("/u").content == b'{"ok":true}'

    assert c.delete(f"/api/v1/rule/{rid}").json()["code"] == 200
    assert c.get(f"/api/v1/rule/{rid}").json()["code"] == 404
    assert c.post("/u").json()["err_msg"] == "no rule match your request"


def test_api_export_import(users_rule):
    c = TestClient(mk_api())
    r = c.post("/api/v1/rules/import", json=[users_rule(id="a"), users_rule(id="b", request={"path": "^/b$", "method": "GET"})])
    assert r.json()["data"]["n"] == 2
    ids = [d["id"] for d in c.get("/api/v1/rules/export").json()["data"]]
    assert ids == ["a", "b"]

    r = c.post("/api/v1/rules/import", json={"not": "a list"})
    assert r.json()["code"] == 400


def test_api_template_uses_query_and_json():
    c = TestClient(mk_api())
    c.post(
        "/api/v1/rule",
        json={
            "request": {"path": "^/calc$", "method": "POST"},
            "responses": [
                {
                    "is_default": True,
                    "response": {
                        "is_template": True,
                        "status_code": 201,
                        "header": {"Content-Type": "text/plain", "X-Mock": "1"},
                        "body": "{{ plus(Json.n, 1) }}/{{ Query.q }}",
                    },
                }
            ],
        },
    )
    r = c.post("/calc?q=z", json={"n": 41})
    assert r.status_code == 201
    assert r.headers["x-mock"] == "1"
    assert r.text == "42/z"


def test_api_non_latin1_response_header_rejected(users_rule):
    c = TestClient(mk_api())
    rsp = [{"is_default": True, "response": {"header": {"X-Name": "中"}, "body": "x"}}]
    j = c.post("/api/v1/rule", json=users_rule(responses=rsp)).json()
    assert j["code"] == 400
    assert "latin-1" in j["err_msg"]
    assert c.get("/users/1").json()["err_msg"] == "no rule match your request"
