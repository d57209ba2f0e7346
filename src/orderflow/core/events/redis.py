"""
Redis Pub/Sub event bus implementation.

Manifesto:
    Chain events are published by whichever worker runs the last step, and
    consumed by the process that dispatched the chain. Redis Pub/Sub carries
    them across that boundary with fire-and-forget delivery.

Events published while no subscriber is listening are lost; chain
callbacks are therefore best-effort notifications, not a completion record.

Tags:
    orderflow, events, redis, pub-sub, multi-process

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
import uuid
from typing import Any

import redis

from orderflow.core.events import Event, EventHandler
from orderflow.core.events.memory import Subscription, dispatch_event
from orderflow.core.logging import get_logger

__all__ = ["RedisEventBus"]

logger = get_logger("orderflow.events.redis")


class RedisEventBus:
    """Redis Pub/Sub backend.

    Events go to ``{channel_prefix}:{event_type}``. The listener thread is
    started lazily on the first :meth:`subscribe`; patterns are matched
    client-side.

    Example::

        bus = RedisEventBus("redis://localhost:6379/3")
        bus.subscribe("chain.*", on_chain_event)
        bus.publish(Event(event_type="chain.completed", source="orchestrator"))
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/3",
        *,
        channel_prefix: str = "orderflow:events",
        client: Any | None = None,
    ) -> None:
        self._channel_prefix = channel_prefix
        self._redis = client if client is not None else redis.from_url(redis_url)
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._pubsub: Any = None
        self._listener: Any = None
        self._closed = False

    def _ensure_listener(self) -> None:
        if self._listener is not None:
            return
        self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        self._pubsub.psubscribe(**{f"{self._channel_prefix}:*": self._on_message})
        self._listener = self._pubsub.run_in_thread(sleep_time=0.1, daemon=True)

    def _on_message(self, message: dict[str, Any]) -> None:
        try:
            event = Event.from_json(message["data"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("event_parse_error", error=str(e))
            return
        self._dispatch(event)

    def _dispatch(self, event: Event) -> None:
        with self._lock:
            subs = list(self._subscriptions.values())
        dispatch_event(event, subs)

    def publish(self, event: Event) -> None:
        if self._closed:
            return
        channel = f"{self._channel_prefix}:{event.event_type}"
        try:
            self._redis.publish(channel, event.to_json())
        except redis.RedisError as e:
            # Notifications are best-effort; the chain itself already progressed
            logger.warning("event_publish_failed", event_type=event.event_type, error=str(e))

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        sub_id = f"redis_sub_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._subscriptions[sub_id] = Subscription(id=sub_id, pattern=event_type, handler=handler)
            self._ensure_listener()
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        with self._lock:
            self._subscriptions.pop(subscription_id, None)

    def close(self) -> None:
        """Stop the listener thread and close connections."""
        self._closed = True
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
        self._redis.close()
        with self._lock:
            self._subscriptions.clear()
