from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field
from app.models.enums import IssuePriority, IssueSource, IssueStatus, MessageChannel, MessageDirection


class IssueCreate(BaseModel):
    property_id: str
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    priority: IssuePriority = IssuePriority.MEDIUM
    source: IssueSource = IssueSource.MANUAL


class IssueUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    priority: IssuePriority | None = None
    status: IssueStatus | None = None


class TimelineEntryRead(BaseModel):
    id: str
    status: str
    note: str | None = None
    created_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class IssueMessageRead(BaseModel):
    id: str
    channel: MessageChannel
    direction: MessageDirection
    recipient: str
    message: str
    external_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class IssueRead(BaseModel):
    id: str
    property_id: str
    title: str
    description: str
    priority: IssuePriority
    status: IssueStatus
    source: IssueSource
    handyman_id: str | None = None
    created_at: datetime
    timeline: list[TimelineEntryRead] = []

    model_config = {"from_attributes": True}
