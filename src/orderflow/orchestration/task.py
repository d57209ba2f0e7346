"""Task types that can be placed in a chain.

A task is anything with a ``task_type`` string and a ``payload()`` returning
a JSON-serialisable value. Most tasks subclass :class:`BaseTask`, a dataclass
whose fields *are* the payload:

    @dataclass
    class InventoryCheckTask(BaseTask):
        task_type: ClassVar[str] = "inventory:check"
        order_id: int

    InventoryCheckTask(order_id=42).to_message()
    # TaskMessage(task_type='inventory:check', payload=b'{"order_id":42}')

Handlers decode with ``InventoryCheckTask.from_message(message)``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol, TypeVar, runtime_checkable

from orderflow.core.errors import PayloadDecodeError
from orderflow.execution.message import TaskMessage

T = TypeVar("T", bound="BaseTask")


@runtime_checkable
class Task(Protocol):
    task_type: str

    def payload(self) -> Any: ...


@dataclass
class BaseTask:
    """Dataclass-backed task; subclasses set ``task_type`` as a ClassVar."""

    task_type: ClassVar[str] = ""

    def payload(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    def to_message(self) -> TaskMessage:
        return to_message(self)

    @classmethod
    def from_message(cls: type[T], message: TaskMessage) -> T:
        """Rebuild the task from a delivered message.

        Raises:
            PayloadDecodeError: if the payload is not a JSON object matching the fields.
        """
        try:
            data = message.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            return cls(**data)
        except (ValueError, TypeError) as exc:
            raise PayloadDecodeError(
                f"Invalid payload for '{message.task_type}': {exc}", cause=exc
            ).with_context(task_type=message.task_type) from exc


@dataclass
class GenericTask:
    """A task built from a type and an arbitrary JSON value."""

    task_type: str
    data: Any = field(default=None)

    def payload(self) -> Any:
        return self.data


def to_message(task: Task) -> TaskMessage:
    """Serialise any task into the queue message shape."""
    if not task.task_type:
        raise ValueError(f"{type(task).__name__} has no task_type")
    return TaskMessage.from_json(task.task_type, task.payload())


__all__ = ["Task", "BaseTask", "GenericTask", "TaskMessage", "to_message"]
