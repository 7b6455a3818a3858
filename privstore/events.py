"""
In-process event bus for privstore
Publishes consent and reset notifications to whoever subscribed
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """A published notification"""
    event_type: str
    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


Handler = Callable[[Event], None]


class EventBus:
    """
    Synchronous pub/sub.

    - publish delivers to every subscriber of the event type, in subscription order
    - "*" subscribes to every event type
    - a failing handler is logged and never stops delivery to the others
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, event_type: str, handler: Handler) -> None:
        if not callable(handler):
            raise ValueError("handler must be callable")
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, handler: Handler) -> int:
        removed = 0
        for event_type, handlers in self._subscribers.items():
            keep = [h for h in handlers if h is not handler]
            removed += len(handlers) - len(keep)
            self._subscribers[event_type] = keep
        return removed

    def publish(self, event_type: str, payload: Any = None) -> int:
        """Deliver an event; returns how many handlers ran successfully"""
        event = Event(event_type=event_type, payload=payload)
        handlers = self._subscribers.get(event_type, []) + self._subscribers.get("*", [])

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error("Event handler failed", event_type=event_type, error=str(e))

        logger.debug("Event published", event_type=event_type, delivered=delivered)
        return delivered
