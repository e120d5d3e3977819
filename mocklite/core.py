"""Core types shared by the matching and rendering engine.

The module contains the error hierarchy, the parsed request/response objects
and the JSON error envelope.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import parse_qsl

from pydantic import BaseModel


class MkErr(Exception):
    """Base exception for mocklite."""


class CmpErr(MkErr):
    """Raised when a rule definition cannot be compiled."""


class NoMtchErr(MkErr):
    """Raised when no rule or regulation matches a request."""


class RndErr(MkErr):
    """Raised when a response template fails to execute."""


class NfErr(MkErr):
    """Raised when a rule id is unknown."""


class DupErr(MkErr):
    """Raised when a rule with the same method and path is registered."""


class DbErr(MkErr):
    """Raised when the rule database cannot be read or written."""


JSON_CT = "application/json"


class Env(BaseModel):
    """Uniform response envelope.

    Attributes:
        code: Result code (200 ok, 400 bad request, 404 unknown rule).
        data: Payload on success.
        err_msg: Error text on failure.
    """

    code: int
    data: Any = None
    err_msg: str | None = None


def env_b(code: int, err: str | None = None, data: Any = None) -> bytes:
    """Serialize an envelope.

    Args:
        code: Result code.
        err: Error message (omitted when None).
        data: Payload (omitted when None).

    Returns:
        Compact JSON bytes.
    """
    return Env(code=code, data=data, err_msg=err).model_dump_json(exclude_none=True).encode("utf-8")


@dataclass(frozen=True)
class Rq:
    """Parsed inbound request.

    Args:
        mt: HTTP method as received.
        pth: Raw URL path.
        hdr: Headers, keys lower-cased.
        qry: Query arguments (first value per key).
        bd: Raw body.
    """

    mt: str
    pth: str
    hdr: Mapping[str, str] = field(default_factory=dict)
    qry: Mapping[str, str] = field(default_factory=dict)
    bd: bytes = b""

    @classmethod
    def mk(
        cls,
        mt: str,
        pth: str,
        hdr: Mapping[str, str] | None = None,
        qs: str | Mapping[str, str] = "",
        bd: bytes | str = b"",
    ) -> "Rq":
        """Build request with normalized header keys and parsed query.

        Args:
            mt: Method.
            pth: Path.
            hdr: Header mapping in any key case.
            qs: Raw query string or already parsed mapping.
            bd: Body bytes (str is UTF-8 encoded).

        Returns:
            New request.
        """
        h = {str(k).lower(): str(v) for k, v in (hdr or {}).items()}
        if isinstance(qs, str):
            q: dict[str, str] = {}
            for k, v in parse_qsl(qs, keep_blank_values=True):
                q.setdefault(k, v)
        else:
            q = {str(k): str(v) for k, v in qs.items()}
        b = bd.encode("utf-8") if isinstance(bd, str) else bytes(bd)
        return cls(mt=mt, pth=pth, hdr=h, qry=q, bd=b)

    def ctype(self) -> str:
        """Media type of the body without parameters."""
        return self.hdr.get("content-type", "").split(";", 1)[0].strip().lower()

    def form(self) -> dict[str, str]:
        """Form fields of an urlencoded body (empty otherwise)."""
        if self.ctype() != "application/x-www-form-urlencoded":
            return {}
        out: dict[str, str] = {}
        for k, v in parse_qsl(self.bd.decode("utf-8", errors="replace"), keep_blank_values=True):
            out.setdefault(k, v)
        return out

    def json(self) -> dict[str, Any]:
        """Top-level fields of a JSON object body (empty otherwise)."""
        ct = self.ctype()
        if not (ct == JSON_CT or ct.endswith("+json")) or not self.bd:
            return {}
        try:
            d = json.loads(self.bd)
        except (ValueError, RecursionError):
            return {}
        return d if isinstance(d, dict) else {}


@dataclass
class Rs:
    """Response being populated in place.

    Args:
        st: Status code.
        hdr: Response headers.
        bd: Body buffer.
    """

    st: int = 200
    hdr: dict[str, str] = field(default_factory=dict)
    bd: bytearray = field(default_factory=bytearray)

    def set_hdr(self, k: str, v: str) -> None:
        """Set header, replacing any existing key in another case."""
        for x in [x for x in self.hdr if x.lower() == k.lower()]:
            del self.hdr[x]
        self.hdr[k] = v

    def set_bd(self, b: bytes) -> None:
        """Replace body."""
        self.bd = bytearray(b)

    def env(self, code: int, err: str | None = None, data: Any = None) -> None:
        """Replace body with an envelope and mark it as JSON."""
        self.set_hdr("Content-Type", JSON_CT)
        self.set_bd(env_b(code, err, data))
