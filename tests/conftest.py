"""Shared fixtures: file-backed SQLite per test, fake gateways, a settable clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from app.db import crud
from app.db.engine import build_engine, build_session_factory, create_all
from app.models import CoverageType
from app.schemas import DispatchConfigUpdate
from app.services.dispatch_config import save_dispatch_config
from app.services.event_bus import EventBus
from app.services.messaging import CallResult, MessageGateway, SendResult, VoiceGateway
from app.services.orchestrator import DispatchOrchestrator

T0 = datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc)  # a Monday
SENDER = "+15125550000"


class FakeGateway(MessageGateway):
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail_with: str | None = None
        self.raise_with: Exception | None = None

    async def send_message(self, to, body, sender=None):
        if self.raise_with:
            raise self.raise_with
        if self.fail_with:
            return SendResult(success=False, error=self.fail_with)
        self.sent.append((to, body))
        return SendResult(success=True, message_id=f"SM{len(self.sent):04d}")


class FakeVoice(VoiceGateway):
    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    async def place_call(self, phone_number, metadata=None):
        self.calls.append((phone_number, metadata or {}))
        return CallResult(success=True, call_id="call-1")


class Clock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_all(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def orchestrator(session_factory, gateway, bus, clock):
    return DispatchOrchestrator(session_factory, gateway, bus=bus, clock=clock)


@pytest_asyncio.fixture
async def world(db):
    """One property in 78701 with an open issue and two handymen who cover it."""
    await save_dispatch_config(db, DispatchConfigUpdate(whatsapp_number=SENDER))
    prop = await crud.create_property(db, "Seaside Cottage", address="12 Harbor Rd",
                                      city="Austin", state="TX", zip_code="78701")
    issue = await crud.create_issue(db, prop.id, "Leaking faucet", "Kitchen sink drips")
    zip_pro = await crud.create_handyman(db, "Alice", phone="5125550101", specialties=["plumbing"])
    await crud.add_coverage_area(db, zip_pro.id, coverage_type=CoverageType.ZIP_CODE, value="78701")
    radius_pro = await crud.create_handyman(db, "Bob", phone="5125550102", specialties=["plumbing"])
    await crud.add_coverage_area(db, radius_pro.id, coverage_type=CoverageType.RADIUS,
                                 value="Downtown", radius_miles=10, priority=2)
    return {"property": prop, "issue": issue, "alice": zip_pro, "bob": radius_pro}
