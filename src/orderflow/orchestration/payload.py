"""Chain payload — the entire state of a chain in flight.

Nothing about a running chain is stored anywhere except inside the
orchestrator message that carries this payload. Each hop reads it, runs one
step and, on success, enqueues a copy with ``current_step + 1``. A failed
step leaves the payload untouched, so redelivery resumes at that step.

Wire format (UTF-8 JSON)::

    {
      "chain_id": "CHAIN_8F14E45F-CEEA-467A-9575-2D6B2E2AE0C3",
      "tasks": [{"type": "inventory:check", "payload": {"order_id": 42}}, ...],
      "current_step": 0,
      "max_retries": 3,
      "timeout": 180.0,
      "queue": "order_processing_chain",
      "context": {...}            # optional
    }

``timeout`` is in seconds.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from orderflow.core.errors import PayloadDecodeError
from orderflow.execution.message import TaskMessage
from orderflow.orchestration.task import Task

ORCHESTRATOR_TASK_TYPE = "chain:orchestrator"


def new_chain_id() -> str:
    return "CHAIN_" + str(uuid.uuid4()).upper()


@dataclass(frozen=True)
class SerializedTask:
    """One step: task type plus its JSON payload value."""

    type: str
    payload: Any = None

    @classmethod
    def from_task(cls, task: Task) -> SerializedTask:
        if not task.task_type:
            raise ValueError(f"{type(task).__name__} has no task_type")
        payload = task.payload()
        # Fail at build time rather than in a worker
        json.dumps(payload)
        return cls(type=task.task_type, payload=payload)

    def to_message(self) -> TaskMessage:
        return TaskMessage.from_json(self.type, self.payload)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}


@dataclass(frozen=True)
class ChainPayload:
    chain_id: str
    tasks: tuple[SerializedTask, ...]
    current_step: int = 0
    max_retries: int = 3
    timeout: float = 300.0
    queue: str = "default"
    context: dict[str, Any] | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.chain_id:
            raise ValueError("chain_id must be non-empty")
        if isinstance(self.current_step, bool) or not isinstance(self.current_step, int):
            raise ValueError("current_step must be an integer")
        if not 0 <= self.current_step <= len(self.tasks):
            raise ValueError(
                f"current_step {self.current_step} out of range for {len(self.tasks)} task(s)"
            )
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if not self.queue:
            raise ValueError("queue must be non-empty")

    # ── State ──────────────────────────────────────────────────────────

    @property
    def is_complete(self) -> bool:
        return self.current_step >= len(self.tasks)

    @property
    def current_task(self) -> SerializedTask:
        if self.is_complete:
            raise IndexError(f"Chain {self.chain_id} has no step {self.current_step}")
        return self.tasks[self.current_step]

    def advance(self) -> ChainPayload:
        """Return a copy pointing at the next step."""
        if self.is_complete:
            raise ValueError(f"Chain {self.chain_id} is already complete")
        return replace(self, current_step=self.current_step + 1)

    # ── Wire format ────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "chain_id": self.chain_id,
            "tasks": [t.to_dict() for t in self.tasks],
            "current_step": self.current_step,
            "max_retries": self.max_retries,
            "timeout": self.timeout,
            "queue": self.queue,
        }
        if self.context:
            data["context"] = self.context
        return data

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes | str) -> ChainPayload:
        """Decode and validate a payload.

        Raises:
            PayloadDecodeError: malformed JSON, missing/mistyped fields, or an
                out-of-range ``current_step``.
        """
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError("payload is not a JSON object")
            tasks = data["tasks"]
            if not isinstance(tasks, list):
                raise TypeError("tasks is not a list")
            serialized = []
            for item in tasks:
                if not isinstance(item, dict) or not isinstance(item.get("type"), str):
                    raise TypeError(f"malformed task entry: {item!r}")
                serialized.append(SerializedTask(type=item["type"], payload=item.get("payload")))
            context = data.get("context")
            if context is not None and not isinstance(context, dict):
                raise TypeError("context is not an object")
            return cls(
                chain_id=str(data["chain_id"]),
                tasks=tuple(serialized),
                current_step=data["current_step"],
                max_retries=int(data["max_retries"]),
                timeout=float(data["timeout"]),
                queue=str(data["queue"]),
                context=context,
            )
        except (ValueError, TypeError, KeyError) as exc:
            raise PayloadDecodeError(f"Invalid chain payload: {exc}", cause=exc) from exc


@dataclass(frozen=True)
class NextStep:
    payload: ChainPayload


@dataclass(frozen=True)
class ChainDone:
    payload: ChainPayload


def next_step(payload: ChainPayload) -> NextStep | ChainDone:
    """Decide what follows a successful step. Pure; enqueues nothing."""
    advanced = payload.advance()
    if advanced.is_complete:
        return ChainDone(advanced)
    return NextStep(advanced)


def build_payload(
    tasks: Sequence[Task],
    *,
    chain_id: str | None = None,
    max_retries: int = 3,
    timeout: float = 300.0,
    queue: str = "default",
    context: dict[str, Any] | None = None,
) -> ChainPayload:
    return ChainPayload(
        chain_id=chain_id or new_chain_id(),
        tasks=tuple(SerializedTask.from_task(t) for t in tasks),
        current_step=0,
        max_retries=max_retries,
        timeout=timeout,
        queue=queue,
        context=context or None,
    )


__all__ = [
    "ORCHESTRATOR_TASK_TYPE",
    "SerializedTask",
    "ChainPayload",
    "NextStep",
    "ChainDone",
    "next_step",
    "build_payload",
    "new_chain_id",
]
