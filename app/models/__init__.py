"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.property import Property, property_handymen
from app.models.handyman import Handyman
from app.models.coverage_area import CoverageArea
from app.models.availability import WeeklyAvailability, TimeOff
from app.models.issue import Issue, IssueTimeline, IssueMessage
from app.models.dispatch_assignment import DispatchAssignment
from app.models.system_config import SystemConfig
from app.models.enums import (
    IssuePriority, IssueStatus, IssueSource, HandymanStatus, CoverageType,
    TimeOffStatus, DispatchStatus, MessageChannel, MessageDirection,
)

__all__ = [
    "Base", "Property", "property_handymen", "Handyman", "CoverageArea",
    "WeeklyAvailability", "TimeOff", "Issue", "IssueTimeline", "IssueMessage",
    "DispatchAssignment", "SystemConfig",
    # Enums
    "IssuePriority", "IssueStatus", "IssueSource", "HandymanStatus", "CoverageType",
    "TimeOffStatus", "DispatchStatus", "MessageChannel", "MessageDirection",
]
