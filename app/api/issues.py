"""Maintenance issues: intake, dispatch to a handyman, ranked candidates."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.dependencies import get_db, get_orchestrator, get_voice_gateway, http_error
from app.models import IssueStatus
from app.models.base import utcnow
from app.schemas import (
    CallRequest, CallResultRead, CandidateRead, DispatchRequest, DispatchResultRead,
    IssueCreate, IssueMessageRead, IssueRead, IssueUpdate, AssignmentRead,
)
from app.services.availability import is_working_at
from app.services.errors import DispatchError
from app.services.messaging import VoiceGateway
from app.services.orchestrator import DispatchOrchestrator
from app.services.phone import to_e164

router = APIRouter(prefix="/api/issues", tags=["issues"])


@router.post("", response_model=IssueRead, status_code=201)
async def create_issue(
    body: IssueCreate,
    db: AsyncSession = Depends(get_db),
):
    if not await crud.get_property(db, body.property_id):
        raise HTTPException(404, "Property not found")
    issue = await crud.create_issue(
        db, body.property_id, body.title, body.description,
        priority=body.priority, source=body.source,
    )
    crud.add_timeline_entry(db, issue.id, IssueStatus.OPEN.value, "Issue reported", created_by=body.source.value)
    await db.commit()
    await db.refresh(issue)
    return issue


@router.get("", response_model=list[IssueRead])
async def list_issues(
    status: IssueStatus | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_issues(db, status=status)


@router.get("/{issue_id}", response_model=IssueRead)
async def get_issue(
    issue_id: str,
    db: AsyncSession = Depends(get_db),
):
    issue = await crud.get_issue(db, issue_id)
    if not issue:
        raise HTTPException(404, "Issue not found")
    return issue


@router.patch("/{issue_id}", response_model=IssueRead)
async def update_issue(
    issue_id: str,
    body: IssueUpdate,
    db: AsyncSession = Depends(get_db),
):
    issue = await crud.get_issue(db, issue_id)
    if not issue:
        raise HTTPException(404, "Issue not found")

    updates = body.model_dump(exclude_none=True)
    if "status" in updates and updates["status"] != IssueStatus(issue.status):
        crud.add_timeline_entry(db, issue.id, updates["status"].value, "Status changed", created_by="operator")
    if updates:
        await crud.update_issue(db, issue, **updates)
    return await crud.get_issue(db, issue_id)


@router.get("/{issue_id}/messages", response_model=list[IssueMessageRead])
async def list_issue_messages(
    issue_id: str,
    db: AsyncSession = Depends(get_db),
):
    if not await crud.get_issue(db, issue_id):
        raise HTTPException(404, "Issue not found")
    return await crud.list_issue_messages(db, issue_id)


@router.get("/{issue_id}/assignments", response_model=list[AssignmentRead])
async def list_issue_assignments(
    issue_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_assignments(db, issue_id=issue_id)


@router.get("/{issue_id}/candidates", response_model=list[CandidateRead])
async def list_candidates(
    issue_id: str,
    db: AsyncSession = Depends(get_db),
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
):
    try:
        candidates = await orchestrator.rank_candidates(issue_id)
    except DispatchError as e:
        raise http_error(e)

    now = utcnow()
    return [
        CandidateRead(
            handyman_id=c.handyman.id,
            name=c.handyman.name,
            phone=c.handyman.phone,
            available_now=await is_working_at(db, c.handyman.id, now),
            score=c.score.as_dict(),
        )
        for c in candidates
    ]


@router.post("/{issue_id}/dispatch", response_model=DispatchResultRead, status_code=201)
async def dispatch_issue(
    issue_id: str,
    body: DispatchRequest,
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
):
    try:
        result = await orchestrator.dispatch_issue(
            issue_id,
            handyman_id=body.handyman_id,
            custom_message=body.custom_message,
            guest_phone=body.guest_phone,
        )
    except DispatchError as e:
        raise http_error(e)
    return DispatchResultRead(
        success=result.success,
        issue_id=result.issue_id,
        handyman_id=result.handyman_id,
        assignment_id=result.assignment_id,
        message_id=result.message_id,
        message=result.message,
        match=result.match.as_dict() if result.match else None,
        guest_notified=result.guest_notified,
    )


@router.post("/{issue_id}/call", response_model=CallResultRead)
async def call_handyman(
    issue_id: str,
    body: CallRequest,
    db: AsyncSession = Depends(get_db),
    voice: VoiceGateway = Depends(get_voice_gateway),
):
    """Phone a handyman about an issue through the voice assistant."""
    issue = await crud.get_issue(db, issue_id)
    if not issue:
        raise HTTPException(404, "Issue not found")
    handyman = await crud.get_handyman(db, body.handyman_id)
    if not handyman:
        raise HTTPException(404, "Handyman not found")
    try:
        phone = to_e164(handyman.phone)
    except DispatchError as e:
        raise http_error(e)

    result = await voice.place_call(phone, {
        "issue_id": issue.id,
        "handyman_id": handyman.id,
        "issue_title": issue.title,
        "property_address": issue.property.full_address,
    })
    if not result.success:
        raise HTTPException(502, result.error or "Call could not be placed")
    return CallResultRead(success=True, call_id=result.call_id)
