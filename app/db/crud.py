"""CRUD operations for dispatch models."""

from __future__ import annotations

from sqlalchemy import select, func, delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Property, Issue, IssueTimeline, IssueMessage, Handyman, CoverageArea,
    WeeklyAvailability, TimeOff, DispatchAssignment, SystemConfig, property_handymen,
    IssueStatus, DispatchStatus, TimeOffStatus, MessageChannel, MessageDirection,
)
from app.services.phone import same_number


# ── SystemConfig ──────────────────────────────────────────

async def get_config_map(db: AsyncSession) -> dict[str, str]:
    result = await db.execute(select(SystemConfig))
    return {row.name: row.value for row in result.scalars().all()}


async def get_config_value(db: AsyncSession, name: str) -> str | None:
    result = await db.execute(select(SystemConfig).where(SystemConfig.name == name))
    row = result.scalars().first()
    return row.value if row else None


async def set_config_values(db: AsyncSession, values: dict[str, str], descriptions: dict[str, str] | None = None) -> None:
    """Upsert several config keys in one commit."""
    descriptions = descriptions or {}
    result = await db.execute(select(SystemConfig).where(SystemConfig.name.in_(list(values))))
    existing = {row.name: row for row in result.scalars().all()}
    for name, value in values.items():
        row = existing.get(name)
        if row is None:
            db.add(SystemConfig(name=name, value=value, description=descriptions.get(name)))
        else:
            row.value = value
    await db.commit()


# ── Property ──────────────────────────────────────────────

async def create_property(
    db: AsyncSession, name: str, address: str = "", city: str = "",
    state: str = "", zip_code: str = "", **extra,
) -> Property:
    prop = Property(name=name, address=address, city=city, state=state, zip_code=zip_code, **extra)
    db.add(prop)
    await db.commit()
    await db.refresh(prop)
    return prop


async def get_property(db: AsyncSession, property_id: str) -> Property | None:
    return await db.get(Property, property_id)


async def list_properties(db: AsyncSession) -> list[Property]:
    result = await db.execute(select(Property).order_by(Property.created_at.desc()))
    return list(result.scalars().all())


async def assign_handyman_to_property(db: AsyncSession, property_id: str, handyman_id: str) -> None:
    exists = await db.execute(
        select(property_handymen).where(
            property_handymen.c.property_id == property_id,
            property_handymen.c.handyman_id == handyman_id,
        )
    )
    if exists.first() is None:
        await db.execute(insert(property_handymen).values(property_id=property_id, handyman_id=handyman_id))
        await db.commit()


async def unassign_handyman_from_property(db: AsyncSession, property_id: str, handyman_id: str) -> None:
    await db.execute(
        delete(property_handymen).where(
            property_handymen.c.property_id == property_id,
            property_handymen.c.handyman_id == handyman_id,
        )
    )
    await db.commit()


async def list_property_handymen(db: AsyncSession, property_id: str) -> list[Handyman]:
    result = await db.execute(
        select(Handyman)
        .join(property_handymen, property_handymen.c.handyman_id == Handyman.id)
        .where(property_handymen.c.property_id == property_id)
        .order_by(Handyman.name)
    )
    return list(result.scalars().all())


async def list_unassigned_properties(db: AsyncSession, handyman_id: str) -> list[Property]:
    """Properties the handyman is not currently assigned to."""
    assigned = select(property_handymen.c.property_id).where(property_handymen.c.handyman_id == handyman_id)
    result = await db.execute(
        select(Property).where(Property.id.not_in(assigned)).order_by(Property.id)
    )
    return list(result.scalars().all())


# ── Issue ─────────────────────────────────────────────────

async def create_issue(db: AsyncSession, property_id: str, title: str, description: str = "", **extra) -> Issue:
    issue = Issue(property_id=property_id, title=title, description=description, **extra)
    db.add(issue)
    await db.commit()
    await db.refresh(issue)
    return issue


async def get_issue(db: AsyncSession, issue_id: str) -> Issue | None:
    return await db.get(Issue, issue_id)


async def list_issues(db: AsyncSession, status: IssueStatus | None = None) -> list[Issue]:
    query = select(Issue).order_by(Issue.created_at.desc())
    if status is not None:
        query = query.where(Issue.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_issue(db: AsyncSession, issue: Issue, **kwargs) -> Issue:
    for k, v in kwargs.items():
        setattr(issue, k, v)
    await db.commit()
    await db.refresh(issue)
    return issue


def add_timeline_entry(db: AsyncSession, issue_id: str, status: str, note: str | None = None,
                       created_by: str | None = "dispatch") -> IssueTimeline:
    """Stage a timeline row; the caller's commit persists it."""
    entry = IssueTimeline(issue_id=issue_id, status=status, note=note, created_by=created_by)
    db.add(entry)
    return entry


def log_issue_message(
    db: AsyncSession, issue_id: str, message: str, channel: MessageChannel,
    direction: MessageDirection, recipient: str = "", external_id: str | None = None,
) -> IssueMessage:
    """Stage a message-log row; the caller's commit persists it."""
    entry = IssueMessage(
        issue_id=issue_id, message=message, channel=channel,
        direction=direction, recipient=recipient, external_id=external_id,
    )
    db.add(entry)
    return entry


async def list_issue_messages(db: AsyncSession, issue_id: str) -> list[IssueMessage]:
    result = await db.execute(
        select(IssueMessage).where(IssueMessage.issue_id == issue_id).order_by(IssueMessage.created_at)
    )
    return list(result.scalars().all())


async def inbound_message_seen(db: AsyncSession, external_id: str) -> bool:
    result = await db.execute(
        select(IssueMessage.id).where(
            IssueMessage.external_id == external_id,
            IssueMessage.direction == MessageDirection.INBOUND,
        )
    )
    return result.first() is not None


# ── Handyman ──────────────────────────────────────────────

async def create_handyman(db: AsyncSession, name: str, email: str = "", phone: str | None = None,
                          specialties: list[str] | None = None, **extra) -> Handyman:
    """Insert a handyman together with the default Mon-Fri working week."""
    handyman = Handyman(name=name, email=email, phone=phone, specialties=specialties or [], **extra)
    db.add(handyman)
    await db.flush()
    db.add_all(WeeklyAvailability.default_week(handyman.id))
    await db.commit()
    await db.refresh(handyman)
    return handyman


async def get_handyman(db: AsyncSession, handyman_id: str) -> Handyman | None:
    return await db.get(Handyman, handyman_id)


async def list_handymen(db: AsyncSession, active_only: bool = True) -> list[Handyman]:
    query = select(Handyman).order_by(Handyman.name, Handyman.id)
    if active_only:
        query = query.where(Handyman.is_active == True)  # noqa: E712
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_handyman(db: AsyncSession, handyman: Handyman, **kwargs) -> Handyman:
    for k, v in kwargs.items():
        setattr(handyman, k, v)
    await db.commit()
    await db.refresh(handyman)
    return handyman


async def find_handyman_by_phone(db: AsyncSession, phone: str) -> Handyman | None:
    """Match an inbound sender against stored numbers, ignoring formatting."""
    result = await db.execute(select(Handyman).where(Handyman.phone.is_not(None)))
    for handyman in result.scalars().all():
        if same_number(handyman.phone, phone):
            return handyman
    return None


async def count_completed_jobs_by_property(db: AsyncSession, handyman_id: str) -> dict[str, int]:
    """Resolved issues per property for a handyman."""
    result = await db.execute(
        select(Issue.property_id, func.count(Issue.id))
        .where(Issue.handyman_id == handyman_id, Issue.status == IssueStatus.RESOLVED)
        .group_by(Issue.property_id)
    )
    return {property_id: count for property_id, count in result.all()}


# ── CoverageArea ──────────────────────────────────────────

async def add_coverage_area(db: AsyncSession, handyman_id: str, **fields) -> CoverageArea:
    area = CoverageArea(handyman_id=handyman_id, **fields)
    db.add(area)
    await db.commit()
    await db.refresh(area)
    return area


async def list_coverage_areas(db: AsyncSession, handyman_id: str) -> list[CoverageArea]:
    result = await db.execute(
        select(CoverageArea)
        .where(CoverageArea.handyman_id == handyman_id)
        .order_by(CoverageArea.priority, CoverageArea.created_at)
    )
    return list(result.scalars().all())


async def get_coverage_area(db: AsyncSession, area_id: str) -> CoverageArea | None:
    return await db.get(CoverageArea, area_id)


async def update_coverage_area(db: AsyncSession, area: CoverageArea, **kwargs) -> CoverageArea:
    for k, v in kwargs.items():
        if v is not None:
            setattr(area, k, v)
    await db.commit()
    await db.refresh(area)
    return area


async def delete_coverage_area(db: AsyncSession, area: CoverageArea) -> None:
    await db.delete(area)
    await db.commit()


# ── Availability / TimeOff ────────────────────────────────

async def list_weekly_availability(db: AsyncSession, handyman_id: str) -> list[WeeklyAvailability]:
    result = await db.execute(
        select(WeeklyAvailability)
        .where(WeeklyAvailability.handyman_id == handyman_id)
        .order_by(WeeklyAvailability.day_of_week)
    )
    return list(result.scalars().all())


async def create_time_off(db: AsyncSession, handyman_id: str, start_date, end_date, reason: str = "") -> TimeOff:
    entry = TimeOff(handyman_id=handyman_id, start_date=start_date, end_date=end_date, reason=reason)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


async def get_time_off(db: AsyncSession, time_off_id: str) -> TimeOff | None:
    return await db.get(TimeOff, time_off_id)


async def list_time_off(db: AsyncSession, handyman_id: str, status: TimeOffStatus | None = None) -> list[TimeOff]:
    query = select(TimeOff).where(TimeOff.handyman_id == handyman_id).order_by(TimeOff.start_date)
    if status is not None:
        query = query.where(TimeOff.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


# ── DispatchAssignment ────────────────────────────────────

async def get_assignment(db: AsyncSession, assignment_id: str) -> DispatchAssignment | None:
    return await db.get(DispatchAssignment, assignment_id, populate_existing=True)


async def list_assignments(
    db: AsyncSession,
    status: DispatchStatus | None = None,
    issue_id: str | None = None,
    handyman_id: str | None = None,
) -> list[DispatchAssignment]:
    query = select(DispatchAssignment).order_by(DispatchAssignment.dispatch_time.desc())
    if status is not None:
        query = query.where(DispatchAssignment.status == status)
    if issue_id is not None:
        query = query.where(DispatchAssignment.issue_id == issue_id)
    if handyman_id is not None:
        query = query.where(DispatchAssignment.handyman_id == handyman_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def get_pending_assignment(db: AsyncSession, issue_id: str, handyman_id: str) -> DispatchAssignment | None:
    result = await db.execute(
        select(DispatchAssignment).where(
            DispatchAssignment.issue_id == issue_id,
            DispatchAssignment.handyman_id == handyman_id,
            DispatchAssignment.status == DispatchStatus.PENDING,
        )
    )
    return result.scalars().first()


async def latest_pending_for_handyman(db: AsyncSession, handyman_id: str) -> DispatchAssignment | None:
    result = await db.execute(
        select(DispatchAssignment)
        .where(
            DispatchAssignment.handyman_id == handyman_id,
            DispatchAssignment.status == DispatchStatus.PENDING,
        )
        .order_by(DispatchAssignment.dispatch_time.desc())
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def latest_assignment_for_handyman(db: AsyncSession, handyman_id: str) -> DispatchAssignment | None:
    result = await db.execute(
        select(DispatchAssignment)
        .where(DispatchAssignment.handyman_id == handyman_id)
        .order_by(DispatchAssignment.dispatch_time.desc())
    )
    return result.scalars().first()


async def handymen_offered_issue(db: AsyncSession, issue_id: str) -> set[str]:
    """Handyman ids that already received an offer for this issue, in any state."""
    result = await db.execute(
        select(DispatchAssignment.handyman_id).where(DispatchAssignment.issue_id == issue_id)
    )
    return {row[0] for row in result.all()}
