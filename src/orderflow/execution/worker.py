"""Message execution and the in-process worker.

``execute_message`` is the single code path through which any delivered
message reaches its handler, whether the delivery came from Celery
(:mod:`orderflow.execution.tasks`) or from :class:`MemoryWorker`.

``MemoryWorker`` drains a :class:`~orderflow.execution.queue.MemoryQueueClient`
synchronously, applying the same redelivery rules as the Celery task:
non-retryable errors and exhausted budgets go to the dead-letter list,
everything else is requeued with backoff.

Example::

    queue = MemoryQueueClient()
    worker = MemoryWorker(queue, registry)
    Chain(queue).then(task_a).then(task_b).dispatch()
    worker.run_until_idle()
"""

from __future__ import annotations

from dataclasses import dataclass

from orderflow.core.logging import get_logger
from orderflow.execution.context import TaskContext
from orderflow.execution.message import TaskMessage
from orderflow.execution.queue import MemoryQueueClient, QueuedMessage
from orderflow.execution.registry import HandlerRegistry
from orderflow.execution.retry import ExponentialBackoff, RetryStrategy

logger = get_logger(__name__)


def execute_message(registry: HandlerRegistry, task_type: str, payload: bytes, ctx: TaskContext) -> None:
    """Resolve the handler for ``task_type`` and invoke it.

    Raises whatever the handler raises, or ``HandlerNotFoundError``.
    """
    handler = registry.get(task_type)
    handler.process(ctx, TaskMessage(task_type=task_type, payload=payload))


@dataclass
class WorkerStats:
    processed: int = 0
    succeeded: int = 0
    retried: int = 0
    dead_lettered: int = 0


class MemoryWorker:
    """Synchronous worker for a ``MemoryQueueClient``."""

    def __init__(
        self,
        queue: MemoryQueueClient,
        registry: HandlerRegistry,
        strategy: RetryStrategy | None = None,
        *,
        respect_delays: bool = False,
    ) -> None:
        self.queue = queue
        self.registry = registry
        self.strategy = strategy or ExponentialBackoff(jitter=False)
        self.respect_delays = respect_delays
        self.stats = WorkerStats()

    def run_once(self) -> bool:
        """Process one ready message. Returns False when nothing was ready."""
        message = self.queue.pop_ready(respect_delays=self.respect_delays)
        if message is None:
            return False
        self._process(message)
        return True

    def run_until_idle(self, max_messages: int = 10_000) -> WorkerStats:
        """Process messages until no ready message remains."""
        for _ in range(max_messages):
            if not self.run_once():
                break
        return self.stats

    def _process(self, message: QueuedMessage) -> None:
        options = message.options
        ctx = TaskContext.create(
            message_id=message.id,
            queue=options.queue,
            attempt=message.attempt,
            max_retries=options.max_retries,
            timeout=options.timeout,
        )
        self.stats.processed += 1
        try:
            execute_message(self.registry, message.task_type, message.payload, ctx)
        except Exception as exc:
            if self.strategy.should_retry(message.attempt, options.max_retries, exc):
                delay = self.strategy.delay_for(message.attempt, exc)
                logger.warning(
                    "worker.task_retry",
                    message_id=message.id,
                    task_type=message.task_type,
                    attempt=message.attempt,
                    delay=delay,
                    error=str(exc),
                )
                self.queue.requeue(message, delay, error=str(exc))
                self.stats.retried += 1
            else:
                logger.error(
                    "worker.task_failed",
                    message_id=message.id,
                    task_type=message.task_type,
                    attempt=message.attempt,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                self.queue.dead_letter(message, error=str(exc))
                self.stats.dead_lettered += 1
            return
        self.stats.succeeded += 1
        logger.debug("worker.task_succeeded", message_id=message.id, task_type=message.task_type)


__all__ = ["execute_message", "MemoryWorker", "WorkerStats"]
