"""Chain builder — compose tasks and dispatch them as one saga.

Example::

    result = (
        Chain(queue, registry=registry, events=bus)
        .then(InventoryCheckTask(order_id=42))
        .then(ProcessPaymentTask(order_id=42))
        .on_queue("order_processing_chain")
        .max_retries(3)
        .timeout(timedelta(minutes=3))
        .on_success(lambda event: ...)
        .dispatch()
    )
    result.chain_id    # "CHAIN_..."
    result.message_id  # id of the first orchestrator message

``dispatch`` enqueues a single orchestrator message and returns; no step
runs in the calling process.

Callbacks are never serialised. With an event bus they are subscribed to
that chain's ``chain.completed`` / ``chain.failed`` event in *this* process
and removed after the first one fires. Without an event bus they are inert.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from orderflow.core.errors import EmptyChainError, UnknownTaskTypeError
from orderflow.core.events import CHAIN_COMPLETED, CHAIN_FAILED, Event, EventBus
from orderflow.core.logging import get_logger
from orderflow.execution.queue import EnqueueOptions, JobQueueClient
from orderflow.execution.registry import HandlerRegistry
from orderflow.orchestration.payload import (
    ORCHESTRATOR_TASK_TYPE,
    ChainPayload,
    build_payload,
)
from orderflow.orchestration.task import Task

logger = get_logger(__name__)

ChainCallback = Callable[[Event], Any]


@dataclass(frozen=True)
class ChainOptions:
    """Chain defaults. Zero or empty values fall back to the built-in defaults."""

    max_retries: int = 3
    timeout: float = 300.0
    queue: str = "default"

    def normalized(self) -> ChainOptions:
        base = ChainOptions()
        return ChainOptions(
            max_retries=self.max_retries or base.max_retries,
            timeout=self.timeout or base.timeout,
            queue=self.queue or base.queue,
        )


@dataclass(frozen=True)
class DispatchedChain:
    chain_id: str
    message_id: str
    queue: str


class Chain:
    """Fluent builder for a sequential task chain."""

    def __init__(
        self,
        queue: JobQueueClient,
        *,
        registry: HandlerRegistry | None = None,
        events: EventBus | None = None,
        options: ChainOptions | None = None,
    ) -> None:
        opts = (options or ChainOptions()).normalized()
        self._client = queue
        self._registry = registry
        self._events = events
        self._tasks: list[Task] = []
        self._max_retries = opts.max_retries
        self._timeout = opts.timeout
        self._queue = opts.queue
        self._context: dict[str, Any] = {}
        self._on_success: ChainCallback | None = None
        self._on_failure: ChainCallback | None = None

    # ── Builder ──────────────────────────────────────────────────────────

    def then(self, task: Task) -> Chain:
        self._tasks.append(task)
        return self

    def on_queue(self, queue: str) -> Chain:
        if not queue:
            raise ValueError("queue must be non-empty")
        self._queue = queue
        return self

    def max_retries(self, retries: int) -> Chain:
        if retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._max_retries = retries
        return self

    def timeout(self, timeout: float | timedelta) -> Chain:
        seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
        if seconds <= 0:
            raise ValueError("timeout must be > 0")
        self._timeout = seconds
        return self

    def with_context(self, **context: Any) -> Chain:
        """Attach JSON metadata carried with the payload (not passed to handlers)."""
        self._context.update(context)
        return self

    def on_success(self, callback: ChainCallback) -> Chain:
        self._on_success = callback
        return self

    def on_failure(self, callback: ChainCallback) -> Chain:
        self._on_failure = callback
        return self

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    # ── Dispatch ─────────────────────────────────────────────────────────

    def build(self) -> ChainPayload:
        """Validate and serialise the chain into its initial payload."""
        if not self._tasks:
            raise EmptyChainError()
        if self._registry is not None:
            unknown = sorted({t.task_type for t in self._tasks if not self._registry.has(t.task_type)})
            if unknown:
                raise UnknownTaskTypeError(unknown)
        return build_payload(
            self._tasks,
            max_retries=self._max_retries,
            timeout=self._timeout,
            queue=self._queue,
            context=self._context,
        )

    def dispatch(self) -> DispatchedChain:
        """Enqueue the first orchestrator message.

        Raises:
            EmptyChainError: no tasks were added.
            UnknownTaskTypeError: a task type is not registered (only with a registry).
            QueueUnavailableError: the queue rejected the message.
        """
        payload = self.build()
        subscription = self._subscribe_callbacks(payload.chain_id)
        try:
            message_id = self._client.enqueue(
                ORCHESTRATOR_TASK_TYPE,
                payload.to_bytes(),
                EnqueueOptions(
                    queue=payload.queue,
                    max_retries=payload.max_retries,
                    timeout=payload.timeout,
                ),
            )
        except Exception:
            if subscription is not None and self._events is not None:
                self._events.unsubscribe(subscription)
            raise

        logger.info(
            "chain.dispatched",
            chain_id=payload.chain_id,
            message_id=message_id,
            queue=payload.queue,
            total_steps=len(payload.tasks),
            task_types=[t.type for t in payload.tasks],
        )
        return DispatchedChain(chain_id=payload.chain_id, message_id=message_id, queue=payload.queue)

    def _subscribe_callbacks(self, chain_id: str) -> str | None:
        on_success, on_failure = self._on_success, self._on_failure
        if on_success is None and on_failure is None:
            return None
        events = self._events
        if events is None:
            logger.warning("chain.callbacks_ignored", chain_id=chain_id, reason="no event bus")
            return None

        subscription: list[str] = []

        def _on_event(event: Event) -> None:
            if event.correlation_id != chain_id:
                return
            if event.event_type not in (CHAIN_COMPLETED, CHAIN_FAILED):
                return
            for sub_id in subscription:
                events.unsubscribe(sub_id)
            if event.event_type == CHAIN_COMPLETED and on_success is not None:
                on_success(event)
            elif event.event_type == CHAIN_FAILED and on_failure is not None:
                on_failure(event)

        # Subscribe before enqueueing so a fast chain cannot finish unobserved
        subscription.append(events.subscribe("chain.*", _on_event))
        return subscription[0]


__all__ = ["Chain", "ChainOptions", "ChainCallback", "DispatchedChain"]
