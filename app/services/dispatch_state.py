"""Lifecycle of a single dispatch assignment.

    pending -> accepted | declined | canceled | escalated

Every right-hand state is terminal. Transitions are compare-and-swap
updates guarded by ``status = 'pending'``, so when a reply, a cancel and
the escalation sweep race for the same row exactly one of them wins and
the others get ``AlreadyResolved``.

Functions here stage changes on the caller's session; except for
``create_assignment`` the caller owns the commit.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.models import DispatchAssignment, DispatchStatus, MessageChannel
from app.models.base import as_utc, utcnow
from app.services.errors import AlreadyResolved, DuplicateAssignment, NotFound

logger = logging.getLogger(__name__)

LEGAL_TRANSITIONS: dict[DispatchStatus, frozenset[DispatchStatus]] = {
    DispatchStatus.PENDING: frozenset({
        DispatchStatus.ACCEPTED,
        DispatchStatus.DECLINED,
        DispatchStatus.CANCELED,
        DispatchStatus.ESCALATED,
    }),
    DispatchStatus.ACCEPTED: frozenset(),
    DispatchStatus.DECLINED: frozenset(),
    DispatchStatus.CANCELED: frozenset(),
    DispatchStatus.ESCALATED: frozenset(),
}

# Replies that end the wait and stamp response_time.
RESPONSE_STATES = frozenset({DispatchStatus.ACCEPTED, DispatchStatus.DECLINED})

_ACCEPT_WORDS = {"1", "accept", "accepted", "yes", "y", "ok"}
_DECLINE_WORDS = {"2", "decline", "declined", "no", "n", "reject"}
_FIRST_WORD = re.compile(r"[a-z0-9]+")


def parse_reply(body: str | None) -> DispatchStatus | None:
    """Map a handyman's reply text to ACCEPTED / DECLINED, or None if unrecognized."""
    match = _FIRST_WORD.search((body or "").strip().lower())
    if not match:
        return None
    word = match.group(0)
    if word in _ACCEPT_WORDS:
        return DispatchStatus.ACCEPTED
    if word in _DECLINE_WORDS:
        return DispatchStatus.DECLINED
    return None


def can_transition(current: DispatchStatus, target: DispatchStatus) -> bool:
    return target in LEGAL_TRANSITIONS[DispatchStatus(current)]


async def create_assignment(
    db: AsyncSession,
    issue_id: str,
    handyman_id: str,
    now: datetime | None = None,
    channel: MessageChannel = MessageChannel.WHATSAPP,
) -> DispatchAssignment:
    """Insert a pending offer, refusing a second live offer for the same pair."""
    if await crud.get_pending_assignment(db, issue_id, handyman_id) is not None:
        raise DuplicateAssignment("Handyman already has a pending dispatch for this issue")

    assignment = DispatchAssignment(
        issue_id=issue_id,
        handyman_id=handyman_id,
        status=DispatchStatus.PENDING,
        channel=channel,
        dispatch_time=now or utcnow(),
        response_time=None,
        retry_count=0,
    )
    db.add(assignment)
    try:
        await db.commit()
    except IntegrityError:
        # Lost the race to a concurrent insert; the partial unique index caught it.
        await db.rollback()
        raise DuplicateAssignment("Handyman already has a pending dispatch for this issue")
    await db.refresh(assignment)
    return assignment


async def transition(
    db: AsyncSession,
    assignment_id: str,
    target: DispatchStatus,
    now: datetime | None = None,
) -> DispatchAssignment:
    """Move a pending assignment to ``target``.

    Raises ``AlreadyResolved`` when the row is no longer pending and
    ``NotFound`` when it does not exist.
    """
    target = DispatchStatus(target)
    if target not in LEGAL_TRANSITIONS[DispatchStatus.PENDING]:
        raise ValueError(f"{target.value} is not reachable from pending")

    values: dict = {"status": target}
    if target in RESPONSE_STATES:
        values["response_time"] = now or utcnow()

    result = await db.execute(
        update(DispatchAssignment)
        .where(
            DispatchAssignment.id == assignment_id,
            DispatchAssignment.status == DispatchStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = await crud.get_assignment(db, assignment_id)
        if current is None:
            raise NotFound("Dispatch assignment not found")
        raise AlreadyResolved(f"Dispatch already {DispatchStatus(current.status).value}")

    assignment = await crud.get_assignment(db, assignment_id)
    logger.info("Dispatch %s -> %s", assignment_id, target.value)
    return assignment


def follow_up_due(assignment: DispatchAssignment, response_timeout_minutes: int, now: datetime) -> bool:
    """Next deadline is dispatch_time + timeout * (follow-ups already sent + 1)."""
    deadline = as_utc(assignment.dispatch_time) + timedelta(
        minutes=response_timeout_minutes * (assignment.retry_count + 1)
    )
    return as_utc(now) >= deadline


async def claim_follow_up(db: AsyncSession, assignment: DispatchAssignment, now: datetime) -> bool:
    """Reserve the next follow-up slot.

    Bumps retry_count only if nobody else has bumped it since ``assignment``
    was read, so two overlapping sweeps cannot send the same reminder.
    """
    result = await db.execute(
        update(DispatchAssignment)
        .where(
            DispatchAssignment.id == assignment.id,
            DispatchAssignment.status == DispatchStatus.PENDING,
            DispatchAssignment.retry_count == assignment.retry_count,
        )
        .values(retry_count=assignment.retry_count + 1, last_follow_up_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
