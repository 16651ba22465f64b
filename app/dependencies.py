"""FastAPI dependency providers for DB sessions and the dispatch orchestrator."""

from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException, Request

from app.config import Settings, get_settings
from app.db.engine import get_db  # noqa: F401  (re-exported for routers)
from app.services.errors import DispatchError
from app.services.messaging import VoiceGateway
from app.services.orchestrator import DispatchOrchestrator


@lru_cache
def get_settings_dep() -> Settings:
    return get_settings()


def get_orchestrator(request: Request) -> DispatchOrchestrator:
    """The app-wide orchestrator built in the lifespan handler."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(503, "Dispatch service is not ready")
    return orchestrator


def http_error(exc: DispatchError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def get_voice_gateway(request: Request) -> VoiceGateway:
    return request.app.state.voice_gateway
