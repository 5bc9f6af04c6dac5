"""Event bus for routing agent events to subscribers."""
import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable

from agentflow.models import Event

logger = logging.getLogger(__name__)

Subscriber = Callable[[Event], None]


class EventBus:
    """Thread-safe pub/sub bus for decision, execution, error and session events."""

    def __init__(self):
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_types: list[str], callback: Subscriber) -> None:
        """Register callback for event types. Use ["*"] for all events."""
        with self._lock:
            for event_type in event_types:
                self._subscribers[event_type].append(callback)
                logger.debug(f"Subscribed {_name(callback)} to {event_type}")

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            for event_type, callbacks in self._subscribers.items():
                if callback in callbacks:
                    callbacks.remove(callback)
                    logger.debug(f"Unsubscribed {_name(callback)} from {event_type}")

    def subscriber_count(self, event_type: str) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))

    def publish(self, event: Event) -> None:
        """Deliver event to subscribers of its type, then wildcard subscribers.

        A failing subscriber is logged and does not affect the others.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(event.type, [])) + list(
                self._subscribers.get("*", [])
            )

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in subscriber {_name(callback)}: {e}")

    def emit(self, event_type: str, source: str, payload: dict[str, Any]) -> Event:
        """Build an event stamped with the current UTC time and publish it."""
        event = Event(
            type=event_type,
            timestamp=datetime.now(timezone.utc),
            source=source,
            payload=payload,
        )
        self.publish(event)
        return event


def _name(callback: Callable) -> str:
    return getattr(callback, "__name__", repr(callback))
