"""Load and save DispatchConfig through the key/value system_config table."""

from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.db import crud
from app.schemas.dispatch_config import DispatchConfig, DispatchConfigUpdate
from app.services.errors import ConfigurationMissing

logger = logging.getLogger(__name__)

# DispatchConfig field -> system_config row name
CONFIG_KEYS = {
    "dispatch_template": "dispatch_template",
    "whatsapp_number": "whatsapp_number",
    "include_attachments": "dispatch_include_attachments",
    "response_timeout": "dispatch_response_timeout",
    "auto_escalate": "dispatch_auto_escalate",
    "max_retries": "dispatch_max_retries",
}

DESCRIPTIONS = {
    "dispatch_template": "Message template for dispatching handymen",
    "whatsapp_number": "Twilio phone number for WhatsApp messaging",
    "dispatch_include_attachments": "Whether to include attachments in dispatch messages",
    "dispatch_response_timeout": "Minutes to wait for a handyman response before follow-up",
    "dispatch_auto_escalate": "Whether to send follow-ups and escalate unanswered dispatches",
    "dispatch_max_retries": "Follow-up reminders before a dispatch is escalated",
}

_TRUE = {"1", "true", "yes", "on"}


def _to_storage(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _from_storage(field: str, raw: str):
    if field in ("include_attachments", "auto_escalate"):
        return raw.strip().lower() in _TRUE
    if field in ("response_timeout", "max_retries"):
        return int(raw)
    return raw


async def load_dispatch_config(db: AsyncSession) -> DispatchConfig:
    """Stored values over process defaults.

    Each stored value is checked on its own; a bad one falls back to the
    default for that key only.
    """
    defaults = get_settings().dispatch
    values = {
        "response_timeout": defaults.response_timeout,
        "auto_escalate": defaults.auto_escalate,
        "max_retries": defaults.max_retries,
        "include_attachments": defaults.include_attachments,
    }
    stored = await crud.get_config_map(db)
    for field, key in CONFIG_KEYS.items():
        if key not in stored:
            continue
        try:
            candidate = {**values, field: _from_storage(field, stored[key])}
            DispatchConfig(**candidate)
        except (ValueError, ValidationError):
            logger.warning("Ignoring invalid system_config %s=%r", key, stored[key])
            continue
        values = candidate
    return DispatchConfig(**values)


async def save_dispatch_config(db: AsyncSession, update: DispatchConfigUpdate) -> DispatchConfig:
    changes = update.model_dump(exclude_none=True)
    if changes:
        await crud.set_config_values(
            db,
            {CONFIG_KEYS[f]: _to_storage(v) for f, v in changes.items()},
            {CONFIG_KEYS[f]: DESCRIPTIONS[CONFIG_KEYS[f]] for f in changes},
        )
    return await load_dispatch_config(db)


def require_sendable(config: DispatchConfig) -> None:
    """Raise ConfigurationMissing unless a template and sender number are set."""
    if not config.dispatch_template.strip():
        raise ConfigurationMissing("Dispatch template is not configured")
    if not config.whatsapp_number:
        raise ConfigurationMissing("WhatsApp number is not configured")
