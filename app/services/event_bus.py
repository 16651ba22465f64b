"""In-process domain event bus for dispatch changes."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Awaitable, Callable, Union

from app.models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DispatchEvent:
    assignment_id: str
    issue_id: str
    handyman_id: str
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_message(self) -> dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return {"event": self.name, "data": data}


@dataclass
class AssignmentCreated(DispatchEvent):
    pass


@dataclass
class AssignmentTransitioned(DispatchEvent):
    from_status: str = "pending"
    to_status: str = ""


@dataclass
class FollowUpSent(DispatchEvent):
    attempt: int = 0


Handler = Callable[[DispatchEvent], Union[Awaitable[None], None]]


class EventBus:
    def __init__(self):
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    async def publish(self, event: DispatchEvent) -> None:
        """Deliver to every subscriber; a failing subscriber never reaches the publisher."""
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, event.name)


event_bus = EventBus()
