"""Chain orchestrator — the handler for ``chain:orchestrator`` messages.

One delivery runs exactly one step::

    decode payload ──► complete? ──yes──► log, return (no-op)
                          │no
                          ▼
                 resolve handler for tasks[current_step]
                          │
                 handler.process(ctx, message)
                     │ok               │raised
                     ▼                 ▼
             next_step(payload)    publish chain.failed (if final),
              │NextStep  │Done      re-raise unchanged
              ▼          ▼
       enqueue advanced  publish chain.completed
       copy after delay
        (enqueue failed: publish chain.failed if final, re-raise)

The payload is never advanced on failure, so the queue's redelivery retries
the same step. Errors are never reclassified here: a non-retryable handler
error stays non-retryable.
"""

from __future__ import annotations

from orderflow.core.errors import OrderflowError, is_retryable
from orderflow.core.events import CHAIN_COMPLETED, CHAIN_FAILED, Event, EventBus
from orderflow.core.logging import LogContext, get_logger
from orderflow.execution.context import TaskContext
from orderflow.execution.message import TaskMessage
from orderflow.execution.queue import EnqueueOptions, JobQueueClient
from orderflow.execution.registry import HandlerRegistry
from orderflow.orchestration.ledger import StepLedger
from orderflow.orchestration.payload import (
    ORCHESTRATOR_TASK_TYPE,
    ChainDone,
    ChainPayload,
    next_step,
)

logger = get_logger(__name__)


class ChainOrchestrator:
    """Runs one chain step per delivery and enqueues the continuation."""

    task_type = ORCHESTRATOR_TASK_TYPE

    def __init__(
        self,
        registry: HandlerRegistry,
        queue: JobQueueClient,
        *,
        step_delay: float = 1.0,
        ledger: StepLedger | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.registry = registry
        self.queue = queue
        self.step_delay = step_delay
        self.ledger = ledger
        self.events = events

    def process(self, ctx: TaskContext, message: TaskMessage) -> None:
        payload = ChainPayload.from_bytes(message.payload)

        with LogContext(chain_id=payload.chain_id, step=payload.current_step):
            if payload.is_complete:
                logger.info("chain.already_complete", total_steps=len(payload.tasks))
                return

            task = payload.current_task
            if self.ledger is not None and self.ledger.is_done(payload.chain_id, payload.current_step):
                logger.info("chain.step_already_done", task_type=task.type)
            else:
                self._run_step(ctx, payload)

            outcome = next_step(payload)
            if isinstance(outcome, ChainDone):
                self._complete(outcome.payload)
            else:
                self._enqueue(ctx, outcome.payload)

    def _run_step(self, ctx: TaskContext, payload: ChainPayload) -> None:
        task = payload.current_task
        logger.info(
            "chain.step_started",
            task_type=task.type,
            total_steps=len(payload.tasks),
            attempt=ctx.attempt,
        )
        try:
            ctx.check()
            handler = self.registry.get(task.type)
            handler.process(ctx, task.to_message())
        except Exception as exc:
            logger.error(
                "chain.step_failed",
                task_type=task.type,
                attempt=ctx.attempt,
                error=str(exc),
                error_type=type(exc).__name__,
                retryable=is_retryable(exc),
            )
            if not is_retryable(exc) or ctx.is_final_attempt:
                self._publish_failed(payload, exc)
            raise

        if self.ledger is not None:
            self.ledger.mark_done(payload.chain_id, payload.current_step)
        logger.info("chain.step_completed", task_type=task.type)

    def _enqueue(self, ctx: TaskContext, payload: ChainPayload) -> None:
        try:
            message_id = self.queue.enqueue(
                ORCHESTRATOR_TASK_TYPE,
                payload.to_bytes(),
                EnqueueOptions(
                    queue=payload.queue,
                    max_retries=payload.max_retries,
                    timeout=payload.timeout,
                    process_after=self.step_delay,
                ),
            )
        except Exception as exc:
            logger.error(
                "chain.enqueue_failed",
                next_step=payload.current_step,
                attempt=ctx.attempt,
                error=str(exc),
                error_type=type(exc).__name__,
                retryable=is_retryable(exc),
            )
            if not is_retryable(exc) or ctx.is_final_attempt:
                self._publish_failed(payload, exc, stage="enqueue")
            raise
        logger.info(
            "chain.next_step_enqueued",
            next_step=payload.current_step,
            task_type=payload.current_task.type,
            message_id=message_id,
            queue=payload.queue,
        )

    def _complete(self, payload: ChainPayload) -> None:
        logger.info("chain.completed", total_steps=len(payload.tasks))
        if self.events is not None:
            self.events.publish(
                Event(
                    event_type=CHAIN_COMPLETED,
                    source="orchestrator",
                    payload={"chain_id": payload.chain_id, "total_steps": len(payload.tasks)},
                    correlation_id=payload.chain_id,
                )
            )

    def _publish_failed(self, payload: ChainPayload, exc: Exception, *, stage: str = "step") -> None:
        if self.events is None:
            return
        if isinstance(exc, OrderflowError):
            error = exc.to_dict()
        else:
            error = {"error_type": type(exc).__name__, "message": str(exc)}
        self.events.publish(
            Event(
                event_type=CHAIN_FAILED,
                source="orchestrator",
                payload={
                    "chain_id": payload.chain_id,
                    "step": payload.current_step,
                    "task_type": payload.current_task.type,
                    "stage": stage,
                    "error": error,
                },
                correlation_id=payload.chain_id,
            )
        )


__all__ = ["ChainOrchestrator"]
