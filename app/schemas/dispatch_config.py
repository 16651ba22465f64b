"""Runtime dispatch options stored in the system_config table."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from app.services.templates import DEFAULT_DISPATCH_TEMPLATE

_E164 = re.compile(r"^\+[1-9]\d{6,14}$")


class DispatchConfig(BaseModel):
    dispatch_template: str = Field(default=DEFAULT_DISPATCH_TEMPLATE, min_length=10)
    whatsapp_number: str = ""
    include_attachments: bool = False
    response_timeout: int = Field(default=30, ge=5)  # minutes
    auto_escalate: bool = True
    max_retries: int = Field(default=3, ge=1, le=5)

    @field_validator("whatsapp_number")
    @classmethod
    def validate_whatsapp_number(cls, v: str) -> str:
        v = v.strip()
        if v and not _E164.match(v):
            raise ValueError("whatsapp_number must be in E.164 format (starting with +)")
        return v


class DispatchConfigUpdate(BaseModel):
    dispatch_template: str | None = Field(default=None, min_length=10)
    whatsapp_number: str | None = None
    include_attachments: bool | None = None
    response_timeout: int | None = Field(default=None, ge=5)
    auto_escalate: bool | None = None
    max_retries: int | None = Field(default=None, ge=1, le=5)

    @field_validator("whatsapp_number")
    @classmethod
    def validate_whatsapp_number(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return DispatchConfig.validate_whatsapp_number(v)
