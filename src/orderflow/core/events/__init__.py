"""Event bus for chain lifecycle notifications.

Why This Package Exists
-----------------------
The orchestrator runs in whichever worker picks up the last step of a
chain, which is usually not the process that dispatched it. Completion
callbacks therefore cannot be stored in the chain payload; instead the
orchestrator publishes ``chain.completed`` / ``chain.failed`` events and the
dispatching process subscribes to them.

The ``EventBus`` protocol has two backends: in-memory (single process and
tests) and Redis Pub/Sub (events cross process boundaries).

Usage::

    from orderflow.core.events import Event
    from orderflow.core.events.memory import InMemoryEventBus

    bus = InMemoryEventBus()
    bus.subscribe("chain.*", lambda event: print(event.event_type))
    bus.publish(Event(event_type="chain.completed", source="orchestrator"))

Modules
-------
memory      InMemoryEventBus -- synchronous, single process
redis       RedisEventBus -- Redis Pub/Sub, multi-process
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "CHAIN_COMPLETED",
    "CHAIN_FAILED",
]

CHAIN_COMPLETED = "chain.completed"
CHAIN_FAILED = "chain.failed"


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class Event:
    """Event payload.

    Attributes:
        event_type: Dot-separated type (e.g., ``chain.completed``)
        source: Origin component
        payload: Event-specific data
        timestamp: When the event occurred (UTC)
        correlation_id: ID linking related events (the chain id for chain events)
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``chain.*`` matches ``chain.completed``, ``chain.failed``
            - ``*`` matches everything
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern

    def to_json(self) -> str:
        return json.dumps({
            "event_type": self.event_type,
            "source": self.source,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "event_id": self.event_id,
        })

    @classmethod
    def from_json(cls, raw: str | bytes) -> Event:
        data = json.loads(raw)
        return cls(
            event_type=data["event_type"],
            source=data["source"],
            payload=data.get("payload") or {},
            timestamp=datetime.fromisoformat(data["timestamp"]),
            correlation_id=data.get("correlation_id"),
            event_id=data.get("event_id") or str(uuid.uuid4()),
        )


# ── Type Aliases ─────────────────────────────────────────────────────────

EventHandler = Callable[[Event], None]


# ── EventBus Protocol ────────────────────────────────────────────────────


@runtime_checkable
class EventBus(Protocol):
    """Protocol for event bus implementations.

    Handler exceptions are logged by the bus and never reach the publisher.
    """

    def publish(self, event: Event) -> None: ...

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern. Returns a subscription id."""
        ...

    def unsubscribe(self, subscription_id: str) -> None: ...

    def close(self) -> None: ...
