import asyncio
from datetime import date

import pytest

from app.db import crud
from app.models import DispatchStatus, HandymanStatus, IssueStatus, MessageDirection
from app.schemas import DispatchConfigUpdate
from app.services.availability import decide_time_off, request_time_off
from app.services.dispatch_config import save_dispatch_config
from app.services.errors import (
    AlreadyResolved, ConfigurationMissing, DuplicateAssignment, GatewaySendFailure,
    NoCandidate, UnmatchedReply,
)
from app.services.event_bus import AssignmentCreated, AssignmentTransitioned, FollowUpSent


@pytest.fixture
def events(bus):
    seen = []
    bus.subscribe(seen.append)
    return seen


async def _assignment(session_factory, assignment_id):
    async with session_factory() as db:
        return await crud.get_assignment(db, assignment_id)


async def _issue(session_factory, issue_id):
    async with session_factory() as db:
        return await crud.get_issue(db, issue_id)


# ── Dispatch ─────────────────────────────────────────────

async def test_auto_dispatch_picks_best_match(orchestrator, gateway, world, events):
    result = await orchestrator.dispatch_issue(world["issue"].id)

    assert result.success
    assert result.handyman_id == world["alice"].id
    assert result.match.distance_score == 100
    assert gateway.sent == [("+15125550101", result.message)]
    assert "12 Harbor Rd" in result.message
    assert [type(e) for e in events] == [AssignmentCreated]


async def test_dispatch_records_message_and_timeline(orchestrator, session_factory, world):
    result = await orchestrator.dispatch_issue(world["issue"].id)

    async with session_factory() as db:
        messages = await crud.list_issue_messages(db, world["issue"].id)
        issue = await crud.get_issue(db, world["issue"].id)
    assert [(m.direction, m.external_id) for m in messages] == [(MessageDirection.OUTBOUND, result.message_id)]
    assert [t.status for t in issue.timeline] == ["dispatched"]

    assignment = await _assignment(session_factory, result.assignment_id)
    assert assignment.message_id == result.message_id
    assert assignment.status == DispatchStatus.PENDING


async def test_manual_dispatch_with_custom_message(orchestrator, gateway, world):
    result = await orchestrator.dispatch_issue(
        world["issue"].id, handyman_id=world["bob"].id, custom_message="Can you look at a faucet today?",
    )
    assert result.handyman_id == world["bob"].id
    assert result.match is None
    assert gateway.sent == [("+15125550102", "Can you look at a faucet today?")]


async def test_auto_match_skips_unavailable_and_time_off(orchestrator, db, world):
    await crud.update_handyman(db, world["alice"], availability=HandymanStatus.BUSY)
    result = await orchestrator.dispatch_issue(world["issue"].id)
    assert result.handyman_id == world["bob"].id

    other = await crud.create_issue(db, world["property"].id, "Squeaky door")
    entry = await request_time_off(db, world["bob"].id, date(2024, 3, 4), date(2024, 3, 4))
    await decide_time_off(db, entry.id, approve=True)
    with pytest.raises(NoCandidate):
        await orchestrator.dispatch_issue(other.id)


async def test_auto_match_skips_handymen_already_offered(orchestrator, world):
    first = await orchestrator.dispatch_issue(world["issue"].id)
    second = await orchestrator.dispatch_issue(world["issue"].id)
    assert first.handyman_id == world["alice"].id
    assert second.handyman_id == world["bob"].id


async def test_concurrent_dispatch_leaves_one_pending(orchestrator, session_factory, gateway, world):
    calls = [
        orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["alice"].id)
        for _ in range(5)
    ]
    results = await asyncio.gather(*calls, return_exceptions=True)

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(isinstance(r, DuplicateAssignment) for r in results if isinstance(r, Exception))
    assert len(gateway.sent) == 1
    async with session_factory() as db:
        pending = await crud.list_assignments(db, status=DispatchStatus.PENDING)
    assert len(pending) == 1


async def test_gateway_failure_cancels_the_new_assignment(orchestrator, session_factory, gateway, world, events):
    gateway.fail_with = "Twilio said no"
    with pytest.raises(GatewaySendFailure):
        await orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["alice"].id)

    async with session_factory() as db:
        rows = await crud.list_assignments(db, issue_id=world["issue"].id)
    assert [r.status for r in rows] == [DispatchStatus.CANCELED]
    assert events[-1].to_status == "canceled"

    gateway.fail_with = None
    result = await orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["alice"].id)
    assert result.success


async def test_raising_gateway_takes_the_failure_path(orchestrator, session_factory, gateway, world):
    gateway.raise_with = ConnectionError("socket closed")
    with pytest.raises(GatewaySendFailure, match="socket closed"):
        await orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["alice"].id)

    async with session_factory() as db:
        rows = await crud.list_assignments(db, issue_id=world["issue"].id)
        issue = await crud.get_issue(db, world["issue"].id)
    assert [r.status for r in rows] == [DispatchStatus.CANCELED]
    assert [t.status for t in issue.timeline] == ["dispatch_failed"]


async def test_dispatch_needs_sender_number(orchestrator, db, world, gateway):
    await crud.set_config_values(db, {"whatsapp_number": ""})
    with pytest.raises(ConfigurationMissing):
        await orchestrator.dispatch_issue(world["issue"].id)
    assert gateway.sent == []


async def test_resolved_issue_cannot_be_dispatched(orchestrator, db, world):
    await crud.update_issue(db, world["issue"], status=IssueStatus.RESOLVED)
    with pytest.raises(AlreadyResolved):
        await orchestrator.dispatch_issue(world["issue"].id)


async def test_guest_is_notified_best_effort(orchestrator, gateway, world):
    result = await orchestrator.dispatch_issue(world["issue"].id, guest_phone="512 555 0199")
    assert result.guest_notified
    assert gateway.sent[-1][0] == "+15125550199"

    other = await orchestrator.dispatch_issue(world["issue"].id, guest_phone="123")
    assert other.success
    assert not other.guest_notified


# ── Replies ──────────────────────────────────────────────

async def test_accept_reply_assigns_issue(orchestrator, session_factory, world, events):
    result = await orchestrator.dispatch_issue(world["issue"].id)
    outcome = await orchestrator.handle_reply("whatsapp:+15125550101", "1", external_id="SMin1")

    assert outcome.status is DispatchStatus.ACCEPTED
    assert outcome.assignment_id == result.assignment_id
    issue = await _issue(session_factory, world["issue"].id)
    assert issue.handyman_id == world["alice"].id
    assert issue.status == IssueStatus.IN_PROGRESS
    assert issue.timeline[-1].status == "accepted"
    assert isinstance(events[-1], AssignmentTransitioned)
    assert events[-1].to_status == "accepted"


async def test_decline_reply_leaves_issue_open(orchestrator, session_factory, world):
    await orchestrator.dispatch_issue(world["issue"].id)
    outcome = await orchestrator.handle_reply("+15125550101", "no, busy today", external_id="SMin1")
    assert outcome.status is DispatchStatus.DECLINED
    issue = await _issue(session_factory, world["issue"].id)
    assert issue.status == IssueStatus.OPEN
    assert issue.handyman_id is None


async def test_replayed_reply_is_rejected(orchestrator, session_factory, clock, world):
    result = await orchestrator.dispatch_issue(world["issue"].id)
    clock.advance(5)
    await orchestrator.handle_reply("+15125550101", "1", external_id="SMin1")
    answered_at = (await _assignment(session_factory, result.assignment_id)).response_time
    assert answered_at is not None

    clock.advance(10)
    with pytest.raises(AlreadyResolved):
        await orchestrator.handle_reply("+15125550101", "1", external_id="SMin1")
    with pytest.raises(AlreadyResolved):
        await orchestrator.handle_reply("+15125550101", "2", external_id="SMin2")

    assignment = await _assignment(session_factory, result.assignment_id)
    assert assignment.status == DispatchStatus.ACCEPTED
    assert assignment.response_time == answered_at


async def test_reply_from_unknown_number(orchestrator, world):
    await orchestrator.dispatch_issue(world["issue"].id)
    with pytest.raises(UnmatchedReply):
        await orchestrator.handle_reply("+15125559999", "1")


async def test_reply_without_any_dispatch(orchestrator, world):
    with pytest.raises(UnmatchedReply):
        await orchestrator.handle_reply("+15125550101", "1")


async def test_unrecognized_text_keeps_offer_pending(orchestrator, session_factory, world):
    result = await orchestrator.dispatch_issue(world["issue"].id)
    with pytest.raises(UnmatchedReply):
        await orchestrator.handle_reply("+15125550101", "what time?", external_id="SMin1")
    assignment = await _assignment(session_factory, result.assignment_id)
    assert assignment.status == DispatchStatus.PENDING


# ── Cancel / reassign ────────────────────────────────────

async def test_cancel_then_reply_is_too_late(orchestrator, gateway, world):
    result = await orchestrator.dispatch_issue(world["issue"].id)
    outcome = await orchestrator.cancel(result.assignment_id, notify_handyman=True)

    assert outcome.assignment.status == DispatchStatus.CANCELED
    assert outcome.notified
    assert "canceled" in gateway.sent[-1][1]
    with pytest.raises(AlreadyResolved):
        await orchestrator.cancel(result.assignment_id)
    with pytest.raises(AlreadyResolved):
        await orchestrator.handle_reply("+15125550101", "1")


async def test_reassign_offers_to_next_best(orchestrator, session_factory, world):
    first = await orchestrator.dispatch_issue(world["issue"].id)
    second = await orchestrator.reassign(first.assignment_id)

    assert second.handyman_id == world["bob"].id
    assert (await _assignment(session_factory, first.assignment_id)).status == DispatchStatus.CANCELED


async def test_reassign_with_nobody_left(orchestrator, world):
    await orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["bob"].id)
    first = await orchestrator.dispatch_issue(world["issue"].id)
    with pytest.raises(NoCandidate):
        await orchestrator.reassign(first.assignment_id)


# ── Escalation sweep ─────────────────────────────────────

async def test_follow_up_then_escalation(orchestrator, db, session_factory, gateway, clock, world, events):
    await save_dispatch_config(db, DispatchConfigUpdate(max_retries=1, response_timeout=30))
    result = await orchestrator.dispatch_issue(world["issue"].id)

    report = await orchestrator.run_escalation_sweep(clock.advance(29))
    assert report.follow_ups == [] and report.escalated == []

    report = await orchestrator.run_escalation_sweep(clock.advance(1))
    assert report.follow_ups == [result.assignment_id]
    assert "Reminder (1/1)" in gateway.sent[-1][1]
    assert isinstance(events[-1], FollowUpSent)

    # Same instant again: nothing new is due.
    report = await orchestrator.run_escalation_sweep(clock.now)
    assert report.follow_ups == [] and report.escalated == []

    report = await orchestrator.run_escalation_sweep(clock.advance(30))
    assert report.escalated == [result.assignment_id]
    assignment = await _assignment(session_factory, result.assignment_id)
    assert assignment.status == DispatchStatus.ESCALATED
    assert assignment.retry_count == 1
    assert assignment.response_time is None
    assert events[-1].to_status == "escalated"
    assert len(gateway.sent) == 2


async def test_overlapping_sweeps_send_one_follow_up(orchestrator, gateway, clock, world):
    await orchestrator.dispatch_issue(world["issue"].id)
    now = clock.advance(31)
    reports = await asyncio.gather(
        orchestrator.run_escalation_sweep(now),
        orchestrator.run_escalation_sweep(now),
    )
    assert sum(len(r.follow_ups) for r in reports) == 1
    assert len(gateway.sent) == 2


async def test_sweep_does_nothing_when_auto_escalate_off(orchestrator, db, session_factory, clock, world):
    await save_dispatch_config(db, DispatchConfigUpdate(auto_escalate=False))
    result = await orchestrator.dispatch_issue(world["issue"].id)
    report = await orchestrator.run_escalation_sweep(clock.advance(24 * 60))
    assert report.follow_ups == [] and report.escalated == []
    assert (await _assignment(session_factory, result.assignment_id)).status == DispatchStatus.PENDING


async def test_sweep_isolates_failing_rows(orchestrator, db, gateway, clock, world):
    await orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["alice"].id)
    await orchestrator.dispatch_issue(world["issue"].id, handyman_id=world["bob"].id)
    # A number that can no longer be dialled breaks only that row's follow-up.
    await crud.update_handyman(db, world["alice"], phone="123")

    report = await orchestrator.run_escalation_sweep(clock.advance(31))
    assert len(report.errors) == 1
    assert len(report.follow_ups) == 1


async def test_accepted_offer_is_not_followed_up(orchestrator, gateway, clock, world):
    await orchestrator.dispatch_issue(world["issue"].id)
    await orchestrator.handle_reply("+15125550101", "yes")
    report = await orchestrator.run_escalation_sweep(clock.advance(120))
    assert report.follow_ups == [] and report.escalated == []
    assert len(gateway.sent) == 1
