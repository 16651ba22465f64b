from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel
from app.models.enums import DispatchStatus, MessageChannel


class DispatchRequest(BaseModel):
    handyman_id: str | None = None  # omitted = best auto-match
    custom_message: str | None = None
    guest_phone: str | None = None


class ReassignRequest(BaseModel):
    handyman_id: str | None = None


class CancelRequest(BaseModel):
    notify_handyman: bool = False


class MatchScoreRead(BaseModel):
    handyman_id: str
    property_id: str
    distance_score: float
    skill_score: float
    workload_score: float
    match_strength: float
    match_reason: str


class CandidateRead(BaseModel):
    handyman_id: str
    name: str
    phone: str | None = None
    available_now: bool = False
    score: MatchScoreRead


class DispatchResultRead(BaseModel):
    success: bool
    issue_id: str
    handyman_id: str | None = None
    assignment_id: str | None = None
    message_id: str | None = None
    message: str = ""
    match: MatchScoreRead | None = None
    guest_notified: bool = False


class AssignmentRead(BaseModel):
    id: str
    issue_id: str
    handyman_id: str
    status: DispatchStatus
    channel: MessageChannel
    dispatch_time: datetime
    response_time: datetime | None = None
    retry_count: int
    last_follow_up_at: datetime | None = None
    message_id: str | None = None

    model_config = {"from_attributes": True}


class SweepReportRead(BaseModel):
    follow_ups: list[str]
    escalated: list[str]
    errors: dict[str, str]


class HandymanMetricsRead(BaseModel):
    handyman_id: str
    handyman_name: str = ""
    total_dispatches: int
    accepted: int
    declined: int
    escalated: int
    canceled: int
    pending_count: int
    acceptance_rate: int
    average_response_time: int


class CallRequest(BaseModel):
    handyman_id: str


class CallResultRead(BaseModel):
    success: bool
    call_id: str | None = None
    error: str | None = None
