import asyncio

from app.services.event_bus import AssignmentCreated, AssignmentTransitioned, EventBus
from app.services.scheduler import EscalationScheduler
from app.services.ws_manager import ConnectionManager, DISPATCH_CHANNEL


def _event():
    return AssignmentTransitioned(assignment_id="a1", issue_id="i1", handyman_id="h1", to_status="accepted")


async def test_sync_and_async_handlers_receive_events():
    bus = EventBus()
    seen = []

    async def async_handler(event):
        seen.append(("async", event.name))

    bus.subscribe(lambda e: seen.append(("sync", e.name)))
    bus.subscribe(async_handler)
    await bus.publish(_event())
    assert seen == [("sync", "AssignmentTransitioned"), ("async", "AssignmentTransitioned")]


async def test_failing_handler_does_not_reach_publisher():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(seen.append)
    await bus.publish(_event())
    assert len(seen) == 1


async def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    unsubscribe()
    await bus.publish(_event())
    assert seen == []


def test_event_message_shape():
    msg = AssignmentCreated(assignment_id="a1", issue_id="i1", handyman_id="h1").to_message()
    assert msg["event"] == "AssignmentCreated"
    assert msg["data"]["assignment_id"] == "a1"
    assert isinstance(msg["data"]["occurred_at"], str)


class _Socket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("closed")
        self.sent.append(data)


async def test_ws_manager_broadcasts_and_drops_dead_sockets():
    manager = ConnectionManager()
    alive, dead = _Socket(), _Socket(fail=True)
    await manager.connect(DISPATCH_CHANNEL, alive)
    await manager.connect(DISPATCH_CHANNEL, dead)

    await manager.on_dispatch_event(_event())
    assert manager.listeners(DISPATCH_CHANNEL) == 1
    await manager.on_dispatch_event(_event())
    assert len(alive.sent) == 2
    assert alive.sent[0]["event"] == "AssignmentTransitioned"


class _CountingOrchestrator:
    def __init__(self):
        self.runs = 0

    async def run_escalation_sweep(self, now=None):
        self.runs += 1
        if self.runs == 1:
            raise RuntimeError("first tick fails")


async def test_scheduler_survives_errors_and_restarts():
    orchestrator = _CountingOrchestrator()
    scheduler = EscalationScheduler(orchestrator, interval_seconds=0.01)
    scheduler.start()
    assert scheduler.is_running
    await asyncio.sleep(0.05)
    await scheduler.stop()
    assert not scheduler.is_running
    runs = orchestrator.runs
    assert runs >= 2

    scheduler.start()
    await asyncio.sleep(0.03)
    await scheduler.stop()
    assert orchestrator.runs > runs
