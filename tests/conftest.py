from typing import Any, Callable

import pytest


def _users_rule(**kw: Any) -> dict[str, Any]:
    d: dict[str, Any] = {
        "request": {"path": r"^/users/\d+$", "method": "GET"},
        "context": {"name": "Alice"},
        "responses": [
            {
                "filter": {"header": {"mode": "keyword", "X-Debug": "true"}},
                "response": {"is_template": True, "body": "Hello {{ Context.name }}"},
            },
            {
                "is_default": True,
                "response": {"status_code": 200, "header": {"Content-Type": "application/json"}, "body": '{"ok":true}'},
            },
        ],
    }
    d.update(kw)
    return d


@pytest.fixture
def users_rule() -> Callable[..., dict[str, Any]]:
    """Factory for a GET /users/<id> rule; keyword args replace top-level fields."""
    return _users_rule
