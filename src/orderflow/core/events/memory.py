"""
In-memory event bus implementation.

Manifesto:
    Tests and single-process deployments need an event bus that delivers
    immediately, without external infrastructure.

Handlers run synchronously in the publishing thread. Events are not
persisted.

Tags:
    orderflow, events, in-memory, testing, single-process

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass

from orderflow.core.events import Event, EventHandler
from orderflow.core.logging import get_logger

__all__ = ["InMemoryEventBus", "Subscription", "dispatch_event"]

logger = get_logger("orderflow.events")


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: EventHandler


def dispatch_event(event: Event, subscriptions: list[Subscription]) -> None:
    """Call every matching handler; failures are logged and skipped."""
    for sub in subscriptions:
        if not event.matches(sub.pattern):
            continue
        try:
            sub.handler(event)
        except Exception as e:
            logger.warning(
                "event_handler_error",
                subscription_id=sub.id,
                event_type=event.event_type,
                error=str(e),
            )


class InMemoryEventBus:
    """In-process event bus.

    Example::

        bus = InMemoryEventBus()
        bus.subscribe("*", lambda e: print(e.event_type))
        bus.publish(Event(event_type="chain.completed", source="orchestrator"))
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._closed = False

    def publish(self, event: Event) -> None:
        if self._closed:
            return
        # Snapshot so handlers may unsubscribe while being called
        with self._lock:
            subs = list(self._subscriptions.values())
        dispatch_event(event, subs)

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._subscriptions[sub_id] = Subscription(id=sub_id, pattern=event_type, handler=handler)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        with self._lock:
            self._subscriptions.pop(subscription_id, None)

    def close(self) -> None:
        self._closed = True
        with self._lock:
            self._subscriptions.clear()

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)
