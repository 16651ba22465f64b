"""Dispatch domain errors.

Each error carries the HTTP status the API layer should answer with, so
routers can translate any ``DispatchError`` into an ``HTTPException``
without a lookup table.
"""

from __future__ import annotations


class DispatchError(Exception):
    status_code: int = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        self.message = str(self)


class NotFound(DispatchError):
    """Requested record does not exist."""
    status_code = 404


class DuplicateAssignment(DispatchError):
    """Handyman already has a pending offer for this issue."""
    status_code = 409


class UnmatchedReply(DispatchError):
    """Inbound reply does not match any pending assignment."""
    status_code = 404


class AlreadyResolved(DispatchError):
    """Assignment is no longer pending."""
    status_code = 409


class InvalidPhoneFormat(DispatchError):
    """Phone number cannot be converted to E.164."""
    status_code = 422


class GatewaySendFailure(DispatchError):
    """Message gateway rejected or timed out the send."""
    status_code = 502


class ConfigurationMissing(DispatchError):
    """Required dispatch configuration is not set."""
    status_code = 400


class NoCandidate(DispatchError):
    """No eligible handyman covers this property."""
    status_code = 404


class InvalidSchedule(DispatchError):
    """Weekly schedule must contain exactly one row per day 0-6."""
    status_code = 422


class TimeOffAlreadyDecided(DispatchError):
    """Time-off request has already been approved or denied."""
    status_code = 409
