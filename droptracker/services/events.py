"""
Domain events raised by ecredit request transitions.

The request manager publishes an event after each committed transition; the
events sit in the bus until the batch pass calls ``dispatch``, so a slow or
broken notification channel can't hold up or undo the state change itself.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List

from droptracker.utils import utcnow

logger = logging.getLogger(__name__)


class RequestEventType(str, enum.Enum):
    CREATED = "created"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RequestEvent:
    type: RequestEventType
    request_id: int
    flight_id: int
    occurred_at: object = field(default_factory=utcnow)


EventHandler = Callable[[RequestEvent], Awaitable[None]]


class RequestEventBus:
    def __init__(self):
        self._handlers: List[EventHandler] = []
        self._pending: List[RequestEvent] = []

    def subscribe(self, handler: EventHandler):
        self._handlers.append(handler)

    def publish(self, event: RequestEvent):
        self._pending.append(event)

    @property
    def pending(self) -> List[RequestEvent]:
        return list(self._pending)

    async def dispatch(self) -> int:
        """Deliver queued events to every handler. Returns events delivered."""
        events, self._pending = self._pending, []
        for event in events:
            for handler in self._handlers:
                try:
                    await handler(event)
                except Exception as e:
                    logger.error(f"Event handler failed for {event.type.value} request {event.request_id}: {e}")
        return len(events)
