"""Inbound webhooks from the messaging provider.

Twilio retries any non-2xx answer, so these routes always acknowledge and
only log replies that cannot be applied.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response

from app.dependencies import get_orchestrator
from app.services.errors import AlreadyResolved, DispatchError, UnmatchedReply
from app.services.orchestrator import DispatchOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

_EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


@router.post("/twilio")
async def twilio_inbound(
    From: str = Form(default=""),
    Body: str = Form(default=""),
    MessageSid: str = Form(default=""),
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
):
    sender = From.removeprefix("whatsapp:")
    try:
        outcome = await orchestrator.handle_reply(sender, Body, external_id=MessageSid or None)
        logger.info("Reply %s from %s -> assignment %s %s",
                    MessageSid, sender, outcome.assignment_id, outcome.status.value)
    except (UnmatchedReply, AlreadyResolved) as e:
        logger.info("Ignored reply %s from %s: %s", MessageSid, sender, e.message)
    except DispatchError as e:
        logger.warning("Reply %s from %s could not be applied: %s", MessageSid, sender, e.message)
    return Response(content=_EMPTY_TWIML, media_type="application/xml")
