"""Per-handyman dispatch metrics, recomputed on demand."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import DispatchAssignment, DispatchStatus, Handyman
from app.models.base import as_utc


@dataclass
class HandymanMetrics:
    handyman_id: str
    handyman_name: str = ""
    total_dispatches: int = 0
    accepted: int = 0
    declined: int = 0
    escalated: int = 0
    canceled: int = 0
    pending_count: int = 0
    acceptance_rate: int = 0
    average_response_time: int = 0  # minutes

    def as_dict(self) -> dict:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def compute_handyman_metrics(
    assignments: Iterable[DispatchAssignment],
    names: dict[str, str] | None = None,
) -> dict[str, HandymanMetrics]:
    """Aggregate assignment rows into metrics keyed by handyman id.

    acceptance_rate = accepted / (accepted + declined) * 100, 0 with no decisions.
    average_response_time = mean minutes from dispatch to response over rows
    that have a response_time, 0 with none.
    """
    names = names or {}
    metrics: dict[str, HandymanMetrics] = {}
    response_minutes: dict[str, list[float]] = {}

    for a in assignments:
        m = metrics.get(a.handyman_id)
        if m is None:
            m = HandymanMetrics(handyman_id=a.handyman_id, handyman_name=names.get(a.handyman_id, ""))
            metrics[a.handyman_id] = m
        m.total_dispatches += 1

        status = DispatchStatus(a.status)
        if status is DispatchStatus.ACCEPTED:
            m.accepted += 1
        elif status is DispatchStatus.DECLINED:
            m.declined += 1
        elif status is DispatchStatus.ESCALATED:
            m.escalated += 1
        elif status is DispatchStatus.CANCELED:
            m.canceled += 1
        elif status is DispatchStatus.PENDING:
            m.pending_count += 1

        if a.response_time is not None and a.dispatch_time is not None:
            delta = as_utc(a.response_time) - as_utc(a.dispatch_time)
            response_minutes.setdefault(a.handyman_id, []).append(delta.total_seconds() / 60)

    for handyman_id, m in metrics.items():
        decided = m.accepted + m.declined
        if decided:
            m.acceptance_rate = _round_half_up(m.accepted / decided * 100)
        samples = response_minutes.get(handyman_id)
        if samples:
            m.average_response_time = _round_half_up(sum(samples) / len(samples))

    return metrics


async def load_metrics(db: AsyncSession) -> list[HandymanMetrics]:
    """Read every assignment and return metrics sorted by handyman name."""
    result = await db.execute(select(DispatchAssignment))
    rows = list(result.scalars().all())
    handymen = await db.execute(select(Handyman.id, Handyman.name))
    names = {hid: name for hid, name in handymen.all()}
    metrics = compute_handyman_metrics(rows, names)
    return sorted(metrics.values(), key=lambda m: (m.handyman_name, m.handyman_id))
