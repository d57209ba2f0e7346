"""Job queue clients — enqueue task messages for the worker runtime.

WHY
───
The chain builder and the orchestrator only ever *enqueue*; they never run
a step inline. Both talk to the ``JobQueueClient`` protocol so the same
code runs against Celery in production and an in-process FIFO in tests.

ARCHITECTURE
────────────
::

    JobQueueClient.enqueue(task_type, payload, options) -> message_id

    CeleryQueueClient(app)
      └── app.signature("orderflow.execute", args=[task_type, payload]).apply_async()
    MemoryQueueClient()
      └── list of QueuedMessage, drained by MemoryWorker

    EnqueueOptions
      queue          ─ target queue name
      max_retries    ─ retry budget carried with the message
      timeout        ─ per-attempt time limit (seconds)
      process_after  ─ delay before the message becomes visible (seconds)
      unique_for     ─ dedup window; a second identical message inside it is rejected

Payloads are UTF-8 JSON bytes by convention; the Celery client sends them as
text so they survive Celery's JSON serializer unchanged.

Related modules:
    worker.py — MemoryWorker draining MemoryQueueClient
    tasks.py  — the Celery task behind "orderflow.execute"
"""

from __future__ import annotations

import hashlib
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, runtime_checkable

from kombu.exceptions import KombuError

from orderflow.core.errors import DuplicateTaskError, QueueUnavailableError
from orderflow.core.logging import get_logger
from orderflow.core.store import InMemoryStore, KeyValueStore

logger = get_logger(__name__)

EXECUTE_TASK_NAME = "orderflow.execute"


@dataclass(frozen=True)
class EnqueueOptions:
    queue: str = "default"
    max_retries: int = 3
    timeout: float | None = None
    process_after: float = 0.0
    unique_for: int | None = None


@runtime_checkable
class JobQueueClient(Protocol):
    """Enqueue one message; returns the queue-assigned message id."""

    def enqueue(self, task_type: str, payload: bytes, options: EnqueueOptions | None = None) -> str: ...


def unique_key(task_type: str, payload: bytes, queue: str) -> str:
    digest = hashlib.sha256(task_type.encode() + b"\x00" + payload).hexdigest()
    return f"unique:{queue}:{digest}"


def claim_unique(store: KeyValueStore, task_type: str, payload: bytes, options: EnqueueOptions) -> None:
    """Reserve the dedup key for ``unique_for`` seconds or raise ``DuplicateTaskError``."""
    if not options.unique_for:
        return
    key = unique_key(task_type, payload, options.queue)
    if not store.set_if_absent(key, "1", ttl_seconds=options.unique_for):
        raise DuplicateTaskError(
            f"Task '{task_type}' with identical payload already queued on '{options.queue}'"
        ).with_context(task_type=task_type, queue=options.queue)


# ── In-process queue ─────────────────────────────────────────────────────


@dataclass
class QueuedMessage:
    id: str
    task_type: str
    payload: bytes
    options: EnqueueOptions
    attempt: int = 0
    ready_at: float = 0.0
    last_error: str | None = field(default=None, repr=False)


class MemoryQueueClient:
    """In-process FIFO queue.

    Messages become ready ``process_after`` seconds after enqueue according
    to ``clock``; :class:`~orderflow.execution.worker.MemoryWorker` can also
    ignore delays to drain a chain instantly in tests.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store or InMemoryStore()
        self._clock = clock
        self._messages: list[QueuedMessage] = []
        self.dead_letters: list[QueuedMessage] = []

    def enqueue(self, task_type: str, payload: bytes, options: EnqueueOptions | None = None) -> str:
        options = options or EnqueueOptions()
        claim_unique(self._store, task_type, payload, options)
        message = QueuedMessage(
            id=uuid.uuid4().hex,
            task_type=task_type,
            payload=payload,
            options=options,
            ready_at=self._clock() + options.process_after,
        )
        self._messages.append(message)
        logger.debug(
            "queue.enqueued",
            message_id=message.id,
            task_type=task_type,
            queue=options.queue,
            process_after=options.process_after,
        )
        return message.id

    def pop_ready(self, *, respect_delays: bool = True) -> QueuedMessage | None:
        """Remove and return the oldest message that is ready to run."""
        now = self._clock()
        for i, message in enumerate(self._messages):
            if not respect_delays or message.ready_at <= now:
                return self._messages.pop(i)
        return None

    def requeue(self, message: QueuedMessage, delay: float, error: str | None = None) -> None:
        """Put a failed message back with its attempt counter incremented."""
        self._messages.append(
            replace(message, attempt=message.attempt + 1, ready_at=self._clock() + delay, last_error=error)
        )

    def dead_letter(self, message: QueuedMessage, error: str | None = None) -> None:
        self.dead_letters.append(replace(message, last_error=error))

    @property
    def messages(self) -> list[QueuedMessage]:
        """Snapshot of pending messages, oldest first."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


# ── Celery queue ─────────────────────────────────────────────────────────


class CeleryQueueClient:
    """Enqueue messages as ``orderflow.execute`` Celery tasks.

    Example:
        >>> app = create_celery_app(settings)
        >>> client = CeleryQueueClient(app, store=RedisStore(settings.redis_url))
        >>> client.enqueue("chain:orchestrator", payload, EnqueueOptions(queue="default"))
    """

    def __init__(
        self,
        app: Any,
        store: KeyValueStore | None = None,
        *,
        priorities: dict[str, int] | None = None,
    ) -> None:
        self.celery_app = app
        self._store = store
        self._priorities = priorities or {}

    def enqueue(self, task_type: str, payload: bytes, options: EnqueueOptions | None = None) -> str:
        options = options or EnqueueOptions()
        if options.unique_for and self._store is None:
            raise QueueUnavailableError("unique_for requires a store for dedup keys", retryable=False)
        if self._store is not None:
            claim_unique(self._store, task_type, payload, options)

        signature = self.celery_app.signature(
            EXECUTE_TASK_NAME,
            args=[task_type, payload.decode("utf-8")],
            kwargs={"max_retries": options.max_retries, "timeout": options.timeout},
            queue=options.queue,
            priority=self._priorities.get(options.queue),
        )
        apply_kwargs: dict[str, Any] = {}
        if options.process_after:
            apply_kwargs["countdown"] = options.process_after
        if options.timeout:
            apply_kwargs["time_limit"] = options.timeout
            apply_kwargs["soft_time_limit"] = max(options.timeout - 1, options.timeout * 0.9)

        try:
            result = signature.apply_async(**apply_kwargs)
        except KombuError as exc:
            raise QueueUnavailableError(f"Failed to enqueue '{task_type}': {exc}", cause=exc) from exc

        logger.debug(
            "queue.enqueued",
            message_id=result.id,
            task_type=task_type,
            queue=options.queue,
            process_after=options.process_after,
        )
        return result.id


__all__ = [
    "EXECUTE_TASK_NAME",
    "EnqueueOptions",
    "JobQueueClient",
    "QueuedMessage",
    "MemoryQueueClient",
    "CeleryQueueClient",
    "claim_unique",
    "unique_key",
]
