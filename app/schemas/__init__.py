"""Pydantic request/response schemas."""

from app.schemas.property import PropertyCreate, PropertyRead, PropertyHandymanLink
from app.schemas.issue import IssueCreate, IssueUpdate, IssueRead, IssueMessageRead, TimelineEntryRead
from app.schemas.handyman import (
    HandymanCreate, HandymanUpdate, HandymanRead,
    CoverageAreaCreate, CoverageAreaRead,
    DayScheduleIn, DayScheduleRead, WeeklyScheduleUpdate,
    TimeOffCreate, TimeOffDecision, TimeOffRead,
)
from app.schemas.dispatch import (
    DispatchRequest, ReassignRequest, CancelRequest, DispatchResultRead,
    AssignmentRead, CandidateRead, MatchScoreRead, SweepReportRead,
    HandymanMetricsRead, CallRequest, CallResultRead,
)
from app.schemas.dispatch_config import DispatchConfig, DispatchConfigUpdate

__all__ = [
    "PropertyCreate", "PropertyRead", "PropertyHandymanLink",
    "IssueCreate", "IssueUpdate", "IssueRead", "IssueMessageRead", "TimelineEntryRead",
    "HandymanCreate", "HandymanUpdate", "HandymanRead",
    "CoverageAreaCreate", "CoverageAreaRead",
    "DayScheduleIn", "DayScheduleRead", "WeeklyScheduleUpdate",
    "TimeOffCreate", "TimeOffDecision", "TimeOffRead",
    "DispatchRequest", "ReassignRequest", "CancelRequest", "DispatchResultRead",
    "AssignmentRead", "CandidateRead", "MatchScoreRead", "SweepReportRead",
    "HandymanMetricsRead", "CallRequest", "CallResultRead",
    "DispatchConfig", "DispatchConfigUpdate",
]
