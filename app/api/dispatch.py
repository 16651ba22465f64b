"""Dispatch assignments: status board, cancel/reassign, metrics, runtime config."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import crud
from app.dependencies import get_db, get_orchestrator, http_error
from app.models import DispatchStatus
from app.schemas import (
    AssignmentRead, CancelRequest, DispatchConfig, DispatchConfigUpdate,
    DispatchResultRead, HandymanMetricsRead, ReassignRequest, SweepReportRead,
)
from app.services.dispatch_config import load_dispatch_config, save_dispatch_config
from app.services.errors import DispatchError
from app.services.metrics import load_metrics
from app.services.orchestrator import DispatchOrchestrator

router = APIRouter(prefix="/api/dispatch", tags=["dispatch"])


@router.get("", response_model=list[AssignmentRead])
async def list_assignments(
    status: DispatchStatus | None = None,
    handyman_id: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_assignments(db, status=status, handyman_id=handyman_id)


@router.get("/metrics", response_model=list[HandymanMetricsRead])
async def get_metrics(db: AsyncSession = Depends(get_db)):
    return [m.as_dict() for m in await load_metrics(db)]


@router.get("/config", response_model=DispatchConfig)
async def get_config(db: AsyncSession = Depends(get_db)):
    return await load_dispatch_config(db)


@router.put("/config", response_model=DispatchConfig)
async def update_config(
    body: DispatchConfigUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await save_dispatch_config(db, body)


@router.post("/sweep", response_model=SweepReportRead)
async def run_sweep(orchestrator: DispatchOrchestrator = Depends(get_orchestrator)):
    """Run one follow-up / escalation pass now instead of waiting for the scheduler."""
    report = await orchestrator.run_escalation_sweep()
    return SweepReportRead(follow_ups=report.follow_ups, escalated=report.escalated, errors=report.errors)


@router.get("/{assignment_id}", response_model=AssignmentRead)
async def get_assignment(
    assignment_id: str,
    db: AsyncSession = Depends(get_db),
):
    assignment = await crud.get_assignment(db, assignment_id)
    if not assignment:
        raise HTTPException(404, "Dispatch assignment not found")
    return assignment


@router.post("/{assignment_id}/cancel", response_model=AssignmentRead)
async def cancel_assignment(
    assignment_id: str,
    body: CancelRequest | None = None,
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
):
    notify = body.notify_handyman if body else False
    try:
        outcome = await orchestrator.cancel(assignment_id, notify_handyman=notify)
    except DispatchError as e:
        raise http_error(e)
    return outcome.assignment


@router.post("/{assignment_id}/reassign", response_model=DispatchResultRead, status_code=201)
async def reassign_assignment(
    assignment_id: str,
    body: ReassignRequest | None = None,
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
):
    try:
        result = await orchestrator.reassign(assignment_id, handyman_id=body.handyman_id if body else None)
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
    )
