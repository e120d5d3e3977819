"""Rule definition schema and rule database loader.

Rule database format (json):
- rls: list[dict] (rule definitions, see RlIn)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .core import CmpErr, DbErr


class MtIn(BaseModel):
    """Request matching part of a rule.

    Attributes:
        path: Path regex.
        method: HTTP method, compared exactly.
    """

    path: str = Field(..., min_length=1)
    method: str = Field(..., min_length=1)


class FltIn(BaseModel):
    """Filter parameters.

    Attributes:
        header: Header sub-filter params ("mode" + key/value pairs).
        query: Query sub-filter params ("mode" + key/value pairs).
        body: Body sub-filter params ("mode" + "keyword" or "regular").
    """

    header: dict[str, str] | None = None
    query: dict[str, str] | None = None
    body: dict[str, str] | None = None


class RspIn(BaseModel):
    """Response template.

    Attributes:
        is_template: Render body with Jinja2.
        header: Static response headers.
        status_code: HTTP status (200 when 0).
        body: Text body.
        base64encoded_body: Binary body, base64-encoded; wins over body.
    """

    is_template: bool = False
    header: dict[str, str] = Field(default_factory=dict)
    status_code: int = Field(default=200, ge=0, le=599)
    body: str = ""
    base64encoded_body: str = ""

    @field_validator("header")
    @classmethod
    def _ck_hdr(cls, v: dict[str, str]) -> dict[str, str]:
        for k, x in v.items():
            try:
                k.encode("latin-1")
                x.encode("latin-1")
            except UnicodeEncodeError as e:
                raise ValueError(f"header {k!r} must be latin-1 text") from e
        return v


class RgIn(BaseModel):
    """Response regulation.

    Attributes:
        is_default: Fallback regulation flag.
        filter: Filter (required unless default).
        response: Response template.
    """

    is_default: bool = False
    filter: FltIn | None = None
    response: RspIn

    @model_validator(mode="after")
    def _ck(self) -> "RgIn":
        if not self.is_default and self.filter is None:
            raise ValueError("missing filter rule, or set as default response")
        return self


class RlIn(BaseModel):
    """Rule definition.

    Attributes:
        id: Rule id (assigned on create when empty).
        request: Request matcher.
        context: Variables exposed to templates.
        weight: Group -> variant -> weight.
        responses: Ordered regulations, exactly one default.
    """

    id: str = ""
    request: MtIn
    context: dict[str, Any] = Field(default_factory=dict)
    weight: dict[str, dict[str, int]] = Field(default_factory=dict)
    responses: list[RgIn] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _ck(self) -> "RlIn":
        d = sum(1 for r in self.responses if r.is_default)
        if d != 1:
            raise ValueError("no default response or provided more than one")
        return self

    def asd(self) -> dict[str, Any]:
        """Convert to a plain dict without empty optional parts."""
        return self.model_dump(exclude_none=True)


def _vmsg(e: ValidationError) -> str:
    ps: list[str] = []
    for x in e.errors():
        loc = ".".join(str(p) for p in x.get("loc", ()))
        ps.append(f"{loc}: {x.get('msg', '')}" if loc else str(x.get("msg", "")))
    return "; ".join(ps)


def prs_rl(d: Any) -> RlIn:
    """Validate a rule definition.

    Args:
        d: Decoded JSON.

    Returns:
        Validated definition.

    Raises:
        CmpErr: If the definition does not match the schema.
    """
    if isinstance(d, RlIn):
        return d
    if not isinstance(d, dict):
        raise CmpErr("rule must be object")
    try:
        return RlIn.model_validate(d)
    except ValidationError as e:
        raise CmpErr(_vmsg(e)) from e


def ld_db(p: Path) -> list[dict[str, Any]]:
    """Load rule definitions from db json.

    Args:
        p: Path to db json (missing file -> empty list).

    Returns:
        Raw rule definitions.

    Raises:
        DbErr: If the file cannot be read or is malformed.
    """
    if not p.exists():
        return []
    try:
        d = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise DbErr(f"cannot read db: {p}") from e
    except json.JSONDecodeError as e:
        raise DbErr("db must be JSON") from e
    if not isinstance(d, dict):
        raise DbErr("db root must be object")
    rls = d.get("rls", [])
    if not isinstance(rls, list) or not all(isinstance(x, dict) for x in rls):
        raise DbErr("db.rls must be list of objects")
    return rls


def sv_db(p: Path, rls: list[dict[str, Any]]) -> None:
    """Save rule definitions to db json.

    Args:
        p: Path.
        rls: Raw rule definitions.

    Raises:
        DbErr: On write errors.
    """
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps({"rls": rls}, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise DbErr(f"cannot write db: {p}") from e
