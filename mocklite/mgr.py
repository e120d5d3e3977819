"""Rule registry.

Holds compiled rules in an immutable snapshot. Readers use the current
snapshot without locking; every mutation compiles first and then swaps the
snapshot under a lock, so a request never sees a half-updated rule.
"""

from __future__ import annotations

import logging
import secrets
import threading
from pathlib import Path
from typing import Any, Iterable

from .core import DupErr, NfErr, NoMtchErr, RndErr, Rq, Rs
from .exe import Exe, cmp_rl
from .rules import ld_db, sv_db

logger = logging.getLogger(__name__)

NO_RULE = "no rule match your request"


class RlMgr:
    """Registry of compiled rules.

    Args:
        dbp: Optional path to db json; loaded on start, saved on change.
    """

    def __init__(self, dbp: Path | None = None) -> None:
        self.dbp = dbp
        self._lk = threading.Lock()
        self._exs: tuple[Exe, ...] = ()
        if dbp is not None:
            ds = ld_db(dbp)
            self._exs = tuple(self._cmp_all(ds))
            logger.info("loaded %d rules from %s", len(self._exs), dbp)

    @staticmethod
    def _cmp_all(ds: Iterable[Any]) -> list[Exe]:
        out: list[Exe] = []
        seen: set[str] = set()
        for d in ds:
            ex = cmp_rl(d)
            if not ex.rid or ex.rid in seen:
                ex = cmp_rl(ex.raw, rid=_nid())
            seen.add(ex.rid)
            _ck_dup(out, ex)
            out.append(ex)
        return out

    def _swap(self, exs: tuple[Exe, ...]) -> None:
        if self.dbp is not None:
            sv_db(self.dbp, [x.raw.asd() for x in exs if x.raw is not None])
        self._exs = exs

    def _idx(self, exs: tuple[Exe, ...], rid: str) -> int:
        for i, x in enumerate(exs):
            if x.rid == rid:
                return i
        raise NfErr(f"no rule with id {rid!r}")

    def __len__(self) -> int:
        return len(self._exs)

    def fnd(self, path: str, method: str) -> Exe | None:
        """Find first rule (registration order) matching path and method."""
        for x in self._exs:
            if x.mtch(path, method):
                return x
        return None

    def add(self, d: Any) -> Exe:
        """Compile and install a new rule.

        Raises:
            CmpErr: If the definition is invalid.
            DupErr: If method and path are already registered.
        """
        ex = cmp_rl(d)
        with self._lk:
            exs = self._exs
            if not ex.rid or any(x.rid == ex.rid for x in exs):
                ex = cmp_rl(ex.raw, rid=_nid())
            _ck_dup(exs, ex)
            self._swap(exs + (ex,))
        logger.info("rule %s added: %s %s", ex.rid, ex.mt, ex.pth.pattern)
        return ex

    def get(self, rid: str) -> dict[str, Any]:
        """Raw definition of a rule.

        Raises:
            NfErr: If unknown.
        """
        exs = self._exs
        x = exs[self._idx(exs, rid)]
        return x.raw.asd() if x.raw is not None else {"id": x.rid}

    def upd(self, rid: str, d: Any) -> Exe:
        """Replace a rule wholesale.

        Raises:
            NfErr: If unknown.
            CmpErr: If the definition is invalid.
            DupErr: If method and path clash with another rule.
        """
        ex = cmp_rl(d, rid=rid)
        with self._lk:
            self._put(rid, ex)
        logger.info("rule %s updated", rid)
        return ex

    def _put(self, rid: str, ex: Exe) -> None:
        # caller holds _lk
        exs = self._exs
        i = self._idx(exs, rid)
        _ck_dup(exs[:i] + exs[i + 1 :], ex)
        self._swap(exs[:i] + (ex,) + exs[i + 1 :])

    def ptch(self, rid: str, d: dict[str, Any]) -> Exe:
        """Merge top-level fields into a rule and recompile.

        The read, merge and swap happen under one lock, so concurrent
        patches of the same rule all apply.

        Raises:
            NfErr: If unknown.
            CmpErr: If the merged definition is invalid.
        """
        with self._lk:
            cur = self.get(rid)
            cur.update({k: v for k, v in d.items() if k != "id"})
            ex = cmp_rl(cur, rid=rid)
            self._put(rid, ex)
        logger.info("rule %s patched", rid)
        return ex

    def dl(self, rid: str) -> None:
        """Remove a rule.

        Raises:
            NfErr: If unknown.
        """
        with self._lk:
            exs = self._exs
            i = self._idx(exs, rid)
            self._swap(exs[:i] + exs[i + 1 :])
        logger.info("rule %s deleted", rid)

    def exp(self) -> list[dict[str, Any]]:
        """All rule definitions in registration order."""
        return [x.raw.asd() for x in self._exs if x.raw is not None]

    def imp(self, ds: list[Any]) -> int:
        """Replace all rules; nothing changes if any definition fails.

        Returns:
            Number of installed rules.
        """
        exs = tuple(self._cmp_all(ds))
        with self._lk:
            self._swap(exs)
        logger.info("imported %d rules", len(exs))
        return len(exs)


def _nid() -> str:
    return secrets.token_hex(8)


def _ck_dup(exs: Iterable[Exe], ex: Exe) -> None:
    for x in exs:
        if x.mt == ex.mt and x.pth.pattern == ex.pth.pattern:
            raise DupErr(f"rule {x.rid} already handles {ex.mt} {ex.pth.pattern}")


def mock_do(mgr: RlMgr, rq: Rq, rs: Rs | None = None) -> Rs:
    """Serve one request with the registered rules.

    Args:
        mgr: Registry.
        rq: Parsed request.
        rs: Response to populate (new one when None).

    Returns:
        Populated response. No-match and render failures produce the error
        envelope with code 400.
    """
    rs = rs if rs is not None else Rs()
    ex = mgr.fnd(rq.pth, rq.mt)
    if ex is None:
        rs.env(400, NO_RULE)
        return rs
    try:
        rgl = ex.fnd_reg(rq)
    except NoMtchErr as e:
        rs.env(400, str(e))
        return rs
    try:
        ex.rndr(rgl, rq, rs)
    except RndErr as e:
        logger.error("failed to render response template of rule %s: %s", ex.rid, e)
        rs.env(400, str(e))
    return rs
