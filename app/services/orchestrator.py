"""Dispatch orchestrator: matching -> offer -> replies -> follow-ups/escalation.

All entry points (manual dispatch from the API, inbound webhook replies,
the periodic escalation sweep) go through one ``DispatchOrchestrator`` so
they share the per-(issue, handyman) locks.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db import crud
from app.models import (
    DispatchAssignment, DispatchStatus, Handyman, Issue, IssueStatus,
    MessageDirection,
)
from app.models.base import utcnow
from app.services import dispatch_state
from app.services.availability import accepts_offers, is_time_off_day
from app.services.dispatch_config import load_dispatch_config, require_sendable
from app.services.errors import (
    AlreadyResolved, GatewaySendFailure, InvalidPhoneFormat, NoCandidate,
    NotFound, UnmatchedReply,
)
from app.services.event_bus import (
    AssignmentCreated, AssignmentTransitioned, EventBus, FollowUpSent, event_bus,
)
from app.services.matching import HandymanProfile, MatchScore, rank_handymen
from app.services.messaging import MessageGateway, SendResult
from app.services.phone import to_e164
from app.services.templates import (
    CANCEL_TEMPLATE, FOLLOW_UP_TEMPLATE, GUEST_NOTICE_TEMPLATE,
    dispatch_variables, render_template,
)

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    success: bool
    issue_id: str
    handyman_id: str | None = None
    assignment_id: str | None = None
    message_id: str | None = None
    message: str = ""
    match: MatchScore | None = None
    guest_notified: bool = False
    error: str | None = None


@dataclass
class ReplyOutcome:
    assignment_id: str
    issue_id: str
    handyman_id: str
    status: DispatchStatus


@dataclass
class CancelOutcome:
    assignment: DispatchAssignment
    notified: bool = False


@dataclass
class SweepReport:
    follow_ups: list[str] = field(default_factory=list)
    escalated: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class Candidate:
    handyman: Handyman
    score: MatchScore


class DispatchOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: MessageGateway,
        bus: EventBus = event_bus,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.bus = bus
        self.clock = clock
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, issue_id: str, handyman_id: str) -> asyncio.Lock:
        key = (issue_id, handyman_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # ── Matching ─────────────────────────────────────────

    async def _candidates(self, db: AsyncSession, issue: Issue, exclude: Iterable[str] = ()) -> list[Candidate]:
        """Eligible handymen for the issue's property, best match first."""
        skip = set(exclude) | await crud.handymen_offered_issue(db, issue.id)
        today = self.clock().date()
        by_id: dict[str, Handyman] = {}
        profiles: list[HandymanProfile] = []
        for h in await crud.list_handymen(db, active_only=True):
            if h.id in skip or not accepts_offers(h) or not h.phone:
                continue
            if await is_time_off_day(db, h.id, today):
                continue
            by_id[h.id] = h
            profiles.append(HandymanProfile(
                handyman_id=h.id,
                name=h.name,
                specialties=h.specialties or [],
                coverage_areas=list(h.coverage_areas),
                completed_jobs=await crud.count_completed_jobs_by_property(db, h.id),
            ))
        ranked = rank_handymen(issue.property, profiles)
        return [Candidate(by_id[s.handyman_id], s) for s in ranked if s.distance_score > 0]

    async def rank_candidates(self, issue_id: str) -> list[Candidate]:
        async with self.session_factory() as db:
            issue = await crud.get_issue(db, issue_id)
            if issue is None:
                raise NotFound("Issue not found")
            return await self._candidates(db, issue)

    # ── Dispatch ─────────────────────────────────────────

    async def dispatch_issue(
        self,
        issue_id: str,
        handyman_id: str | None = None,
        custom_message: str | None = None,
        guest_phone: str | None = None,
        exclude: Iterable[str] = (),
    ) -> DispatchResult:
        """Offer an issue to a handyman (explicit, or best auto-match).

        Validation problems raise before anything is written. A gateway
        failure cancels the new assignment and raises ``GatewaySendFailure``.
        """
        async with self.session_factory() as db:
            issue = await crud.get_issue(db, issue_id)
            if issue is None:
                raise NotFound("Issue not found")
            if IssueStatus(issue.status) is IssueStatus.RESOLVED:
                raise AlreadyResolved("Issue is already resolved")
            prop = issue.property

            config = await load_dispatch_config(db)
            require_sendable(config)

            match: MatchScore | None = None
            if handyman_id:
                handyman = await crud.get_handyman(db, handyman_id)
                if handyman is None:
                    raise NotFound("Handyman not found")
            else:
                candidates = await self._candidates(db, issue, exclude)
                if not candidates:
                    raise NoCandidate("No available handyman covers this property")
                handyman, match = candidates[0].handyman, candidates[0].score

            recipient = to_e164(handyman.phone)
            variables = dispatch_variables(issue, prop, handyman)
            body = custom_message or render_template(config.dispatch_template, variables)

            async with self._lock_for(issue.id, handyman.id):
                assignment = await dispatch_state.create_assignment(
                    db, issue.id, handyman.id, now=self.clock(), channel=self.gateway.channel,
                )
                await self.bus.publish(AssignmentCreated(
                    assignment_id=assignment.id, issue_id=issue.id, handyman_id=handyman.id,
                ))

                try:
                    sent = await self.gateway.send_message(recipient, body, sender=config.whatsapp_number)
                except Exception as e:
                    logger.exception("Message gateway raised while dispatching issue %s", issue.id)
                    sent = SendResult(success=False, error=f"Message gateway error: {e}")
                if not sent.success:
                    await dispatch_state.transition(db, assignment.id, DispatchStatus.CANCELED, now=self.clock())
                    crud.add_timeline_entry(db, issue.id, "dispatch_failed", f"{handyman.name}: {sent.error}")
                    await db.commit()
                    await self._publish_transition(assignment, DispatchStatus.CANCELED)
                    logger.warning("Dispatch of issue %s to %s failed: %s", issue.id, handyman.id, sent.error)
                    raise GatewaySendFailure(sent.error or "Message gateway rejected the send")

                assignment.message_id = sent.message_id
                crud.log_issue_message(
                    db, issue.id, body, self.gateway.channel, MessageDirection.OUTBOUND,
                    recipient=recipient, external_id=sent.message_id,
                )
                crud.add_timeline_entry(db, issue.id, "dispatched", f"Offered to {handyman.name}")
                await db.commit()

            result = DispatchResult(
                success=True,
                issue_id=issue.id,
                handyman_id=handyman.id,
                assignment_id=assignment.id,
                message_id=sent.message_id,
                message=body,
                match=match,
            )
            if guest_phone:
                result.guest_notified = await self._notify_guest(db, issue, handyman, guest_phone, config.whatsapp_number)

        logger.info("Issue %s dispatched to handyman %s (assignment %s)", issue_id, result.handyman_id, result.assignment_id)
        return result

    async def _notify_guest(self, db: AsyncSession, issue: Issue, handyman: Handyman,
                            guest_phone: str, sender: str) -> bool:
        """Best-effort heads-up to the guest who reported the issue."""
        try:
            to = to_e164(guest_phone)
        except InvalidPhoneFormat:
            logger.warning("Guest phone %r for issue %s is invalid; not notified", guest_phone, issue.id)
            return False
        body = render_template(GUEST_NOTICE_TEMPLATE, dispatch_variables(issue, issue.property, handyman))
        sent = await self.gateway.send_message(to, body, sender=sender)
        if not sent.success:
            logger.warning("Guest notice for issue %s failed: %s", issue.id, sent.error)
            return False
        crud.log_issue_message(db, issue.id, body, self.gateway.channel, MessageDirection.OUTBOUND,
                               recipient=to, external_id=sent.message_id)
        await db.commit()
        return True

    # ── Replies ──────────────────────────────────────────

    async def handle_reply(self, from_phone: str, body: str, external_id: str | None = None) -> ReplyOutcome:
        """Apply an inbound handyman reply to their most recent pending offer.

        Raises ``UnmatchedReply`` when nothing pending matches the sender or
        text, ``AlreadyResolved`` for replays and late replies.
        """
        target = dispatch_state.parse_reply(body)
        async with self.session_factory() as db:
            if external_id and await crud.inbound_message_seen(db, external_id):
                raise AlreadyResolved(f"Reply {external_id} already processed")

            handyman = await crud.find_handyman_by_phone(db, from_phone)
            if handyman is None:
                raise UnmatchedReply(f"No handyman with phone {from_phone}")

            assignment = await crud.latest_pending_for_handyman(db, handyman.id)
            if assignment is None:
                latest = await crud.latest_assignment_for_handyman(db, handyman.id)
                if latest is not None:
                    raise AlreadyResolved(f"Dispatch already {DispatchStatus(latest.status).value}")
                raise UnmatchedReply(f"No pending dispatch for handyman {handyman.id}")

            if target is None:
                crud.log_issue_message(db, assignment.issue_id, body, self.gateway.channel,
                                       MessageDirection.INBOUND, recipient=from_phone, external_id=external_id)
                await db.commit()
                raise UnmatchedReply(f"Unrecognized reply {body!r}")

            async with self._lock_for(assignment.issue_id, handyman.id):
                try:
                    updated = await dispatch_state.transition(db, assignment.id, target, now=self.clock())
                except AlreadyResolved:
                    await db.rollback()
                    raise

                crud.log_issue_message(db, updated.issue_id, body, self.gateway.channel,
                                       MessageDirection.INBOUND, recipient=from_phone, external_id=external_id)
                crud.add_timeline_entry(db, updated.issue_id, target.value, f"{handyman.name} replied {body.strip()!r}")
                if target is DispatchStatus.ACCEPTED:
                    issue = await crud.get_issue(db, updated.issue_id)
                    issue.handyman_id = handyman.id
                    if IssueStatus(issue.status) is IssueStatus.OPEN:
                        issue.status = IssueStatus.IN_PROGRESS
                await db.commit()

        await self._publish_transition(updated, target)
        return ReplyOutcome(updated.id, updated.issue_id, handyman.id, target)

    # ── Cancel / reassign ────────────────────────────────

    async def cancel(self, assignment_id: str, notify_handyman: bool = False) -> CancelOutcome:
        async with self.session_factory() as db:
            assignment = await crud.get_assignment(db, assignment_id)
            if assignment is None:
                raise NotFound("Dispatch assignment not found")

            async with self._lock_for(assignment.issue_id, assignment.handyman_id):
                try:
                    updated = await dispatch_state.transition(db, assignment_id, DispatchStatus.CANCELED, now=self.clock())
                except AlreadyResolved:
                    await db.rollback()
                    raise
                crud.add_timeline_entry(db, updated.issue_id, "canceled", "Dispatch canceled by operator",
                                        created_by="operator")
                await db.commit()

            await self._publish_transition(updated, DispatchStatus.CANCELED)

            notified = False
            if notify_handyman:
                notified = await self._send_cancel_notice(db, updated)

        return CancelOutcome(assignment=updated, notified=notified)

    async def _send_cancel_notice(self, db: AsyncSession, assignment: DispatchAssignment) -> bool:
        """Failures here are logged only; the cancellation stands."""
        issue = await crud.get_issue(db, assignment.issue_id)
        handyman = await crud.get_handyman(db, assignment.handyman_id)
        try:
            to = to_e164(handyman.phone)
        except InvalidPhoneFormat:
            logger.warning("Cannot notify handyman %s of cancellation: bad phone", handyman.id)
            return False
        config = await load_dispatch_config(db)
        body = render_template(CANCEL_TEMPLATE, dispatch_variables(issue, issue.property, handyman))
        sent = await self.gateway.send_message(to, body, sender=config.whatsapp_number or None)
        if not sent.success:
            logger.warning("Cancellation notice for %s failed: %s", assignment.id, sent.error)
            return False
        crud.log_issue_message(db, issue.id, body, self.gateway.channel, MessageDirection.OUTBOUND,
                               recipient=to, external_id=sent.message_id)
        await db.commit()
        return True

    async def reassign(self, assignment_id: str, handyman_id: str | None = None) -> DispatchResult:
        """Offer the assignment's issue to someone else.

        A still-pending assignment is canceled first. Auto-matching skips
        everyone who already had an offer for this issue.
        """
        async with self.session_factory() as db:
            assignment = await crud.get_assignment(db, assignment_id)
            if assignment is None:
                raise NotFound("Dispatch assignment not found")
            issue_id = assignment.issue_id
            previous = assignment.handyman_id
            still_pending = DispatchStatus(assignment.status) is DispatchStatus.PENDING

        if still_pending:
            try:
                await self.cancel(assignment_id)
            except AlreadyResolved:
                logger.info("Assignment %s resolved before reassignment", assignment_id)
        return await self.dispatch_issue(issue_id, handyman_id=handyman_id, exclude={previous})

    # ── Follow-ups and escalation ────────────────────────

    async def run_escalation_sweep(self, now: datetime | None = None) -> SweepReport:
        """Send due follow-ups and escalate offers whose retry budget is spent.

        Safe to run repeatedly for the same instant: follow-ups are claimed
        through a retry counter. One failing row never stops the sweep.
        """
        now = now or self.clock()
        report = SweepReport()
        async with self.session_factory() as db:
            config = await load_dispatch_config(db)
            if not config.auto_escalate:
                return report
            pending = await crud.list_assignments(db, status=DispatchStatus.PENDING)
            pending_ids = [a.id for a in pending]

        for assignment_id in pending_ids:
            try:
                await self._sweep_one(assignment_id, config, now, report)
            except Exception as e:
                logger.exception("Escalation sweep failed for assignment %s", assignment_id)
                report.errors[assignment_id] = str(e)

        if report.follow_ups or report.escalated:
            logger.info("Sweep: %d follow-ups, %d escalated", len(report.follow_ups), len(report.escalated))
        return report

    async def _sweep_one(self, assignment_id: str, config, now: datetime, report: SweepReport) -> None:
        async with self.session_factory() as db:
            assignment = await crud.get_assignment(db, assignment_id)
            if assignment is None or DispatchStatus(assignment.status) is not DispatchStatus.PENDING:
                return
            if not dispatch_state.follow_up_due(assignment, config.response_timeout, now):
                return

            if assignment.retry_count < config.max_retries:
                attempt = assignment.retry_count + 1
                if not await dispatch_state.claim_follow_up(db, assignment, now):
                    await db.rollback()
                    return
                await db.commit()
                await self._send_follow_up(db, assignment, attempt, config, report)
                return

            async with self._lock_for(assignment.issue_id, assignment.handyman_id):
                try:
                    updated = await dispatch_state.transition(db, assignment_id, DispatchStatus.ESCALATED, now=now)
                except AlreadyResolved:
                    await db.rollback()
                    return
                crud.add_timeline_entry(
                    db, updated.issue_id, "escalated",
                    f"No response after {config.max_retries} follow-up(s)",
                )
                await db.commit()

        report.escalated.append(assignment_id)
        await self._publish_transition(updated, DispatchStatus.ESCALATED)

    async def _send_follow_up(self, db: AsyncSession, assignment: DispatchAssignment, attempt: int,
                              config, report: SweepReport) -> None:
        issue = await crud.get_issue(db, assignment.issue_id)
        handyman = await crud.get_handyman(db, assignment.handyman_id)
        variables = dispatch_variables(issue, issue.property, handyman)
        variables.update(attempt=attempt, max_retries=config.max_retries)
        body = render_template(FOLLOW_UP_TEMPLATE, variables)

        to = to_e164(handyman.phone)
        sent = await self.gateway.send_message(to, body, sender=config.whatsapp_number)
        if not sent.success:
            report.errors[assignment.id] = sent.error or "follow-up send failed"
            logger.warning("Follow-up %d for %s failed: %s", attempt, assignment.id, sent.error)
            return

        crud.log_issue_message(db, issue.id, body, self.gateway.channel, MessageDirection.OUTBOUND,
                               recipient=to, external_id=sent.message_id)
        crud.add_timeline_entry(db, issue.id, "follow_up", f"Reminder {attempt}/{config.max_retries} to {handyman.name}")
        await db.commit()
        report.follow_ups.append(assignment.id)
        await self.bus.publish(FollowUpSent(
            assignment_id=assignment.id, issue_id=issue.id, handyman_id=handyman.id, attempt=attempt,
        ))

    async def _publish_transition(self, assignment: DispatchAssignment, to_status: DispatchStatus) -> None:
        await self.bus.publish(AssignmentTransitioned(
            assignment_id=assignment.id,
            issue_id=assignment.issue_id,
            handyman_id=assignment.handyman_id,
            from_status=DispatchStatus.PENDING.value,
            to_status=to_status.value,
        ))
