"""Closed vocabularies for status and type columns."""

from __future__ import annotations

import enum


class IssuePriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class IssueStatus(str, enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class IssueSource(str, enum.Enum):
    GUEST = "guest"
    AI = "ai"
    OWNER = "owner"
    MANUAL = "manual"


class HandymanStatus(str, enum.Enum):
    AVAILABLE = "Available"
    BUSY = "Busy"
    OFF_DUTY = "Off Duty"
    ON_VACATION = "On Vacation"
    UNAVAILABLE = "Unavailable"


class CoverageType(str, enum.Enum):
    ZIP_CODE = "zip_code"
    CITY = "city"
    RADIUS = "radius"


class TimeOffStatus(str, enum.Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    DENIED = "denied"


class DispatchStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELED = "canceled"
    ESCALATED = "escalated"

    @property
    def is_terminal(self) -> bool:
        return self is not DispatchStatus.PENDING


class MessageChannel(str, enum.Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"
    VOICE = "voice"


class MessageDirection(str, enum.Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"
