"""Execution runtime: queue clients, handler registry, retry policy and workers.

Tags:
    orderflow, execution, celery, queue

Doc-Types:
    api-reference
"""

from orderflow.execution.context import TaskContext
from orderflow.execution.message import TaskMessage
from orderflow.execution.queue import (
    EXECUTE_TASK_NAME,
    CeleryQueueClient,
    EnqueueOptions,
    JobQueueClient,
    MemoryQueueClient,
)
from orderflow.execution.registry import FunctionHandler, HandlerRegistry, TaskHandler, register_task
from orderflow.execution.retry import ConstantBackoff, ExponentialBackoff, NoRetry, RetryStrategy
from orderflow.execution.worker import MemoryWorker, execute_message

__all__ = [
    "TaskContext",
    "TaskMessage",
    "EXECUTE_TASK_NAME",
    "CeleryQueueClient",
    "EnqueueOptions",
    "JobQueueClient",
    "MemoryQueueClient",
    "FunctionHandler",
    "HandlerRegistry",
    "TaskHandler",
    "register_task",
    "ConstantBackoff",
    "ExponentialBackoff",
    "NoRetry",
    "RetryStrategy",
    "MemoryWorker",
    "execute_message",
]
