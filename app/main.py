"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.router import api_router
from app.config import get_settings
from app.db.engine import async_session_factory, create_all
from app.services.event_bus import event_bus
from app.services.messaging import VapiVoiceGateway, build_message_gateway
from app.services.orchestrator import DispatchOrchestrator
from app.services.scheduler import EscalationScheduler
from app.services.ws_manager import ws_manager

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_all()

    orchestrator = DispatchOrchestrator(async_session_factory, build_message_gateway(), bus=event_bus)
    app.state.orchestrator = orchestrator
    app.state.voice_gateway = VapiVoiceGateway(settings.vapi)
    unsubscribe = event_bus.subscribe(ws_manager.on_dispatch_event)

    scheduler = EscalationScheduler(orchestrator, settings.scheduler.sweep_interval_seconds)
    if settings.scheduler.enabled:
        scheduler.start()
    yield
    await scheduler.stop()
    unsubscribe()


app = FastAPI(
    title="Handyman Dispatch",
    description="Matches maintenance issues to handymen, offers them over WhatsApp/SMS, and escalates unanswered offers.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
