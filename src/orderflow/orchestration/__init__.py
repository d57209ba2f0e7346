"""Task chains: sequential sagas whose progress lives in the queued message.

Usage::

    from orderflow.orchestration import Chain

    Chain(queue, registry=registry).then(task_a).then(task_b).dispatch()
"""

from orderflow.orchestration.task import BaseTask, GenericTask, Task, TaskMessage, to_message
from orderflow.orchestration.payload import (
    ORCHESTRATOR_TASK_TYPE,
    ChainDone,
    ChainPayload,
    NextStep,
    SerializedTask,
    new_chain_id,
    next_step,
)
from orderflow.orchestration.ledger import StepLedger
from orderflow.orchestration.orchestrator import ChainOrchestrator
from orderflow.orchestration.chain import Chain, ChainOptions, DispatchedChain

__all__ = [
    "BaseTask",
    "GenericTask",
    "Task",
    "TaskMessage",
    "to_message",
    "ORCHESTRATOR_TASK_TYPE",
    "ChainDone",
    "ChainPayload",
    "NextStep",
    "SerializedTask",
    "new_chain_id",
    "next_step",
    "StepLedger",
    "ChainOrchestrator",
    "Chain",
    "ChainOptions",
    "DispatchedChain",
]
