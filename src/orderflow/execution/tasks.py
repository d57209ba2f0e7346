"""Celery app factory and the generic ``orderflow.execute`` task.

Every orderflow message, including chain orchestrator messages, travels as
one Celery task: ``orderflow.execute(task_type, payload)``. The task looks up
the handler in the registry it was installed with and applies the
redelivery policy from :mod:`orderflow.execution.retry`.

Setup::

    # Start a Celery worker (see orderflow.celery_app):
    celery -A orderflow.celery_app worker --loglevel=info -Q order_processing_chain,default

Configuration::

    ORDERFLOW_CELERY_BROKER_URL     (default: redis://localhost:6379/1)
    ORDERFLOW_CELERY_RESULT_BACKEND (default: redis://localhost:6379/2)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from celery import Celery
from celery.exceptions import SoftTimeLimitExceeded

from orderflow.core.errors import TaskCancelledError
from orderflow.core.logging import get_logger
from orderflow.execution.context import TaskContext
from orderflow.execution.queue import EXECUTE_TASK_NAME
from orderflow.execution.registry import HandlerRegistry
from orderflow.execution.retry import ExponentialBackoff, RetryStrategy
from orderflow.execution.worker import execute_message

if TYPE_CHECKING:
    from orderflow.core.config.settings import OrderflowSettings

logger = get_logger(__name__)


# --------------------------------------------------------------------------- #
# Celery app factory
# --------------------------------------------------------------------------- #


def create_celery_app(settings: OrderflowSettings) -> Celery:
    """Build a Celery app wired to the configured broker and queues."""
    app = Celery(
        "orderflow",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_concurrency=settings.worker_concurrency,
        task_default_queue=settings.chain_queue,
        task_queues={
            name: {"exchange": name, "routing_key": name}
            for name in settings.worker_queues
        },
    )
    return app


# --------------------------------------------------------------------------- #
# Task definition
# --------------------------------------------------------------------------- #


def install_execute_task(
    app: Celery,
    registry: HandlerRegistry,
    strategy: RetryStrategy | None = None,
) -> Any:
    """Register ``orderflow.execute`` on ``app`` bound to ``registry``."""
    strategy = strategy or ExponentialBackoff()

    @app.task(name=EXECUTE_TASK_NAME, bind=True, max_retries=None, shared=False)
    def execute(
        self,
        task_type: str,
        payload: str,
        max_retries: int = 3,
        timeout: float | None = None,
    ) -> None:
        attempt = self.request.retries
        ctx = TaskContext.create(
            message_id=self.request.id,
            queue=(self.request.delivery_info or {}).get("routing_key") or "default",
            attempt=attempt,
            max_retries=max_retries,
            timeout=timeout,
        )
        try:
            try:
                execute_message(registry, task_type, payload.encode("utf-8"), ctx)
            except SoftTimeLimitExceeded as exc:
                ctx.cancel()
                raise TaskCancelledError(f"Task {self.request.id} exceeded its time limit", cause=exc) from exc
        except Exception as exc:
            if not strategy.should_retry(attempt, max_retries, exc):
                logger.error(
                    "worker.task_failed",
                    message_id=self.request.id,
                    task_type=task_type,
                    attempt=attempt,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise
            countdown = strategy.delay_for(attempt, exc)
            logger.warning(
                "worker.task_retry",
                message_id=self.request.id,
                task_type=task_type,
                attempt=attempt,
                countdown=countdown,
                error=str(exc),
            )
            raise self.retry(exc=exc, countdown=countdown, max_retries=max_retries)

    return execute


__all__ = ["create_celery_app", "install_execute_task"]
