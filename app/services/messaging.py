"""Outbound messaging and voice gateways (Twilio WhatsApp/SMS, Vapi)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field

import httpx

from app.config import TwilioConfig, VapiConfig, get_settings
from app.models.enums import MessageChannel

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class CallResult:
    success: bool
    call_id: str | None = None
    error: str | None = None


class MessageGateway(ABC):
    """Abstract interface for sending a text to a phone number."""

    channel: MessageChannel = MessageChannel.WHATSAPP

    @abstractmethod
    async def send_message(self, to: str, body: str, sender: str | None = None) -> SendResult:
        """Send ``body`` to ``to`` (E.164). Never raises for delivery problems."""
        ...


class VoiceGateway(ABC):
    """Abstract interface for placing an outbound call."""

    @abstractmethod
    async def place_call(self, phone_number: str, metadata: dict | None = None) -> CallResult:
        ...


class TwilioMessageGateway(MessageGateway):
    """Twilio Messages API; WhatsApp numbers get the ``whatsapp:`` prefix."""

    def __init__(self, config: TwilioConfig, channel: MessageChannel = MessageChannel.WHATSAPP,
                 default_sender: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.channel = channel
        self.default_sender = default_sender
        self._transport = transport

    def _address(self, number: str) -> str:
        if self.channel is MessageChannel.WHATSAPP and not number.startswith("whatsapp:"):
            return f"whatsapp:{number}"
        return number

    async def send_message(self, to: str, body: str, sender: str | None = None) -> SendResult:
        sender = sender or self.default_sender
        if not self.config.account_sid or not self.config.auth_token:
            logger.warning("Twilio credentials not set; %s to %s not sent", self.channel.value, to)
            return SendResult(success=False, error="Twilio credentials are not configured")
        if not sender:
            return SendResult(success=False, error=f"{self.channel.value} sender number is not configured")
        if not to or not body:
            return SendResult(success=False, error="Recipient phone number and message are required")

        url = f"{self.config.api_base}/Accounts/{self.config.account_sid}/Messages.json"
        data = {"From": self._address(sender), "To": self._address(to), "Body": body}
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                auth=(self.config.account_sid, self.config.auth_token),
                transport=self._transport,
            ) as client:
                response = await client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.exception("Twilio request failed for %s", to)
            return SendResult(success=False, error=f"Gateway request failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400:
            logger.error("Twilio API error %s: %s", response.status_code, payload)
            return SendResult(success=False, error=payload.get("message") or f"HTTP {response.status_code}")
        return SendResult(success=True, message_id=payload.get("sid"))


class VapiVoiceGateway(VoiceGateway):
    """Vapi outbound call API."""

    def __init__(self, config: VapiConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    async def place_call(self, phone_number: str, metadata: dict | None = None) -> CallResult:
        if not self.config.api_key or not self.config.assistant_id:
            logger.warning("Vapi not configured; call to %s not placed", phone_number)
            return CallResult(success=False, error="Vapi is not configured")
        body = {
            "assistantId": self.config.assistant_id,
            "customer": {"number": phone_number},
            "metadata": metadata or {},
        }
        if self.config.phone_number_id:
            body["phoneNumberId"] = self.config.phone_number_id
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                transport=self._transport,
            ) as client:
                response = await client.post(f"{self.config.api_base}/call", json=body)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.exception("Vapi call to %s failed", phone_number)
            return CallResult(success=False, error=f"Voice gateway request failed: {e}")
        return CallResult(success=True, call_id=payload.get("id"))


@dataclass
class RecordedMessage:
    to: str
    body: str
    sender: str | None = None


@dataclass
class LogOnlyGateway(MessageGateway):
    """Keeps recent messages in memory instead of sending, for local runs without Twilio."""

    history: int = 100
    sent: deque[RecordedMessage] = field(init=False)
    _count: int = field(default=0, init=False, repr=False)

    def __post_init__(self):
        self.sent = deque(maxlen=self.history)

    async def send_message(self, to: str, body: str, sender: str | None = None) -> SendResult:
        self._count += 1
        self.sent.append(RecordedMessage(to=to, body=body, sender=sender))
        logger.info("Message to %s (not sent, log-only gateway): %s", to, body)
        return SendResult(success=True, message_id=f"local-{self._count}")


def build_message_gateway() -> MessageGateway:
    """Twilio when credentials are configured, otherwise the log-only gateway."""
    settings = get_settings()
    if settings.twilio.account_sid and settings.twilio.auth_token:
        return TwilioMessageGateway(settings.twilio)
    logger.warning("TWILIO credentials not set; dispatch messages will only be logged")
    return LogOnlyGateway()
