"""
FastAPI surface of the moderation ledger.

Every route requires ``Authorization: Bearer <token>``. Engine errors are
mapped to status codes by the exception handlers registered in
:func:`create_app`; route bodies only translate between JSON and the engine.
"""

from __future__ import annotations

import secrets
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Path, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from modledger.api.schemas import (
    AuditLogResponse,
    EnforcementResponse,
    PunishBody,
    ReverseBody,
    SanctionRecordOut,
    StatsResponse,
)
from modledger.moderation.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from modledger.moderation.sanction_engine import SanctionEngine
from modledger.util.logger import get_logger

logger = get_logger("api")

_bearer = HTTPBearer(auto_error=False)


def _bearer_guard(api_token: str):
    async def require_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> None:
        if credentials is None:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Access token required")
        if not secrets.compare_digest(credentials.credentials.encode(), api_token.encode()):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    return require_token


def build_router(engine: SanctionEngine) -> APIRouter:
    router = APIRouter(prefix="/moderation", tags=["moderation"])

    @router.post("/punish", response_model=EnforcementResponse, status_code=status.HTTP_201_CREATED)
    async def punish(payload: Optional[PunishBody] = Body(None)) -> EnforcementResponse:
        """Issue a sanction. 201 even when enforcement failed; check ``enforcementSucceeded``."""
        record = await engine.issue((payload or PunishBody()).to_request())
        return EnforcementResponse.from_record(record)

    @router.get("/active", response_model=List[SanctionRecordOut])
    async def active(guild_id: str = Query(..., alias="guildId")) -> List[SanctionRecordOut]:
        records = await engine.list_active(guild_id)
        return [SanctionRecordOut.from_record(record) for record in records]

    @router.get("/history", response_model=List[SanctionRecordOut])
    async def history(
        guild_id: str = Query(..., alias="guildId"),
        user_id: str = Query(..., alias="userId"),
    ) -> List[SanctionRecordOut]:
        records = await engine.history(guild_id, user_id)
        return [SanctionRecordOut.from_record(record) for record in records]

    @router.get("/logs", response_model=AuditLogResponse)
    async def logs(
        guild_id: str = Query(..., alias="guildId"),
        kind: Optional[str] = Query(None),
        page: int = Query(1),
        limit: int = Query(20),
    ) -> AuditLogResponse:
        audit_page = await engine.audit_log(guild_id, kind=kind, page=page, limit=limit)
        return AuditLogResponse.from_page(audit_page)

    @router.get("/stats", response_model=StatsResponse)
    async def stats(
        guild_id: str = Query(..., alias="guildId"),
        days: int = Query(30),
    ) -> StatsResponse:
        return StatsResponse.from_stats(await engine.stats(guild_id, days=days))

    @router.get("/records/{record_id}", response_model=SanctionRecordOut)
    async def record(record_id: int = Path(...)) -> SanctionRecordOut:
        return SanctionRecordOut.from_record(await engine.get(record_id))

    @router.post("/reverse/{record_id}", response_model=EnforcementResponse)
    async def reverse(
        record_id: int = Path(...),
        payload: Optional[ReverseBody] = Body(None),
    ) -> EnforcementResponse:
        payload = payload or ReverseBody()
        reversal = await engine.reverse(record_id, payload.moderator_id, payload.reason)
        return EnforcementResponse.from_record(reversal)

    return router


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"errors": [error.to_dict() for error in exc.errors]})

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = []
        for error in exc.errors():
            location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            errors.append({"field": ".".join(location) or "body", "reason": error.get("msg", "invalid value")})
        return JSONResponse(status_code=400, content={"errors": errors})

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ConflictError)
    async def on_conflict(request: Request, exc: ConflictError) -> JSONResponse:
        logger.info("[API] %s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(InvalidStateError)
    async def on_invalid_state(request: Request, exc: InvalidStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"error": str(exc)})


def create_app(engine: SanctionEngine, api_token: str) -> FastAPI:
    """
    Build the FastAPI application around an engine.

    Args:
        engine: Sanction engine serving every route.
        api_token: Bearer token callers must present.

    Raises:
        ValueError: If ``api_token`` is empty.
    """
    if not api_token:
        raise ValueError("api_token must not be empty")

    app = FastAPI(title="modledger", version="0.1.0")
    app.include_router(build_router(engine), dependencies=[Depends(_bearer_guard(api_token))])
    _register_error_handlers(app)
    return app
