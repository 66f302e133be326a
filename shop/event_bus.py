"""
In-process event bus connecting the shop store to its observers.

The shop store publishes what happened (an item was added to the cart, an order
was placed, an API call failed) and knows nothing about who reacts. The
notification center subscribes and turns events into user-facing messages;
tests subscribe to assert on store behaviour.

Design decisions:
- Synchronous delivery, in subscription order
- Type-based subscriptions plus a ``*`` wildcard for "everything"
- A failing handler is logged and does not stop the remaining handlers
- The most recent published events are kept in a bounded log for debugging
  and test assertions
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

logger = logging.getLogger("event_bus")


@dataclass
class Event:
    """
    An immutable record of something that happened in the store.

    Attributes:
        event_type: String name of the event type (used for routing)
        payload: Event-specific data
        source: Component that published the event
        event_id: Unique identifier for this event instance
        timestamp: When the event occurred
    """
    event_type: str
    payload: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


EventHandler = Callable[[Event], None]

DEFAULT_LOG_SIZE = 500


class EventBus:
    """
    Simple in-memory pub/sub.

    Example usage:
        bus = EventBus()
        bus.subscribe("CartItemAdded", lambda event: print(event.payload))
        bus.publish(Event(
            event_type="CartItemAdded",
            source="shop-store",
            payload={"product_id": "p1", "quantity": 1},
        ))
    """

    def __init__(self, max_log_size: int = DEFAULT_LOG_SIZE):
        """
        Args:
            max_log_size: How many recent events the log keeps (0 disables it)
        """
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._event_log: deque[Event] = deque(maxlen=max_log_size)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe ``handler`` to events of ``event_type``."""
        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to '{event_type}' events")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to every event."""
        self._subscribers["*"].append(handler)
        logger.debug("Subscribed handler to ALL events")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Remove a handler.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        try:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from '{event_type}' events")
            return True
        except ValueError:
            return False

    def publish(self, event: Event) -> int:
        """
        Deliver an event to its subscribers.

        Returns:
            Number of handlers that received the event
        """
        self._event_log.append(event)

        logger.debug(f"Publishing: {event}")

        handlers = self._subscribers.get(event.event_type, []) + self._subscribers.get("*", [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler raised exception for {event}: {e}")

        return len(handlers)

    def get_event_log(self) -> list[Event]:
        return list(self._event_log)

    def events_of_type(self, event_type: str) -> list[Event]:
        return [e for e in self._event_log if e.event_type == event_type]

    def clear_event_log(self) -> None:
        self._event_log.clear()


# Module-level singleton for convenience
_default_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the default event bus singleton."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


def reset_event_bus() -> EventBus:
    """Reset the default event bus (useful for testing)."""
    global _default_bus
    _default_bus = EventBus()
    return _default_bus
