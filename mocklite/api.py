"""HTTP API for mocklite.

The app serves two things:
- rule management under /api/v1 (create, get, update, patch, delete,
  export, import); db writes run in the threadpool
- mocked responses for every other path and method

Management responses use the envelope format:
- code: int (200 ok, 400 bad request, 404 unknown rule)
- data: any (on success)
- err_msg: str (on failure)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool

from .core import JSON_CT, CmpErr, DbErr, DupErr, NfErr, Rq, env_b
from .mgr import RlMgr, mock_do

logger = logging.getLogger(__name__)

MOCK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _env(code: int, err: str | None = None, data: Any = None) -> Response:
    return Response(content=env_b(code, err, data), media_type=JSON_CT)


async def _bind(req: Request) -> Any:
    """Decode JSON request body.

    Raises:
        CmpErr: If the body is not JSON.
    """
    try:
        return json.loads(await req.body())
    except ValueError as e:
        logger.error("failed to parse request body: %s %s: %s", req.method, req.url.path, e)
        raise CmpErr(f"bad json: {e}") from e


def _err(e: Exception) -> Response:
    if isinstance(e, NfErr):
        return _env(404, str(e))
    if isinstance(e, DbErr):
        logger.error("rule db failure: %s", e)
        return _env(500, str(e))
    return _env(400, str(e))


async def to_rq(req: Request) -> Rq:
    """Convert an ASGI request to the engine request."""
    return Rq.mk(
        mt=req.method,
        pth=req.url.path,
        hdr=dict(req.headers),
        qs=req.url.query,
        bd=await req.body(),
    )


def mk_api(dbp: Path | None = None, mgr: RlMgr | None = None) -> FastAPI:
    """Create FastAPI mock server application.

    Args:
        dbp: Path to rules database json (None keeps rules in memory).
        mgr: Registry to use instead of building one from dbp.

    Returns:
        FastAPI app.
    """
    app = FastAPI(title="mocklite-api", version="0.1.0")
    rm = mgr if mgr is not None else RlMgr(dbp)
    app.state.mgr = rm

    @app.get("/api/v1/health")
    def health() -> dict[str, Any]:
        """Healthcheck.

        Returns:
            Dict with ok flag and rule count.
        """
        return {"ok": True, "rls": len(rm)}

    @app.post("/api/v1/rule")
    async def rule_add(req: Request) -> Response:
        """Create rule.

        Returns:
            Envelope with the stored definition (id assigned).
        """
        try:
            ex = await run_in_threadpool(rm.add, await _bind(req))
        except (CmpErr, DupErr, DbErr) as e:
            return _err(e)
        return _env(200, data=rm.get(ex.rid))

    @app.get("/api/v1/rule/{rid}")
    def rule_get(rid: str) -> Response:
        """Get rule definition."""
        try:
            return _env(200, data=rm.get(rid))
        except NfErr as e:
            return _err(e)

    @app.put("/api/v1/rule/{rid}")
    async def rule_put(rid: str, req: Request) -> Response:
        """Replace rule definition."""
        try:
            await run_in_threadpool(rm.upd, rid, await _bind(req))
            return _env(200, data=rm.get(rid))
        except (CmpErr, DupErr, NfErr, DbErr) as e:
            return _err(e)

    @app.patch("/api/v1/rule/{rid}")
    async def rule_patch(rid: str, req: Request) -> Response:
        """Merge top-level fields into rule definition."""
        try:
            d = await _bind(req)
            if not isinstance(d, dict):
                raise CmpErr("patch must be object")
            await run_in_threadpool(rm.ptch, rid, d)
            return _env(200, data=rm.get(rid))
        except (CmpErr, DupErr, NfErr, DbErr) as e:
            return _err(e)

    @app.delete("/api/v1/rule/{rid}")
    def rule_del(rid: str) -> Response:
        """Delete rule."""
        try:
            rm.dl(rid)
        except (NfErr, DbErr) as e:
            return _err(e)
        return _env(200, data={"id": rid})

    @app.get("/api/v1/rules/export")
    def rules_exp() -> Response:
        """Export all rule definitions."""
        return _env(200, data=rm.exp())

    @app.post("/api/v1/rules/import")
    async def rules_imp(req: Request) -> Response:
        """Replace all rules with the posted list."""
        try:
            ds = await _bind(req)
            if not isinstance(ds, list):
                raise CmpErr("import must be list of rules")
            n = await run_in_threadpool(rm.imp, ds)
        except (CmpErr, DupErr, DbErr) as e:
            return _err(e)
        return _env(200, data={"n": n})

    @app.api_route("/{path:path}", methods=MOCK_METHODS)
    async def mock(req: Request, path: str) -> Response:
        """Serve mocked response."""
        rs = mock_do(rm, await to_rq(req))
        return Response(content=bytes(rs.bd), status_code=rs.st, headers=rs.hdr)

    return app
