"""Per-delivery task context.

A ``TaskContext`` is created by the worker runtime for every delivery of a
message and handed to the handler. It carries delivery metadata, the retry
budget and a cancellation signal that long-running handlers should poll via
:meth:`TaskContext.check`.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field

from orderflow.core.errors import TaskCancelledError


@dataclass
class TaskContext:
    """Delivery metadata for one handler invocation.

    Attributes:
        message_id: Queue-assigned id of the message being processed
        queue: Queue the message was delivered from
        attempt: Zero-based retry count (0 = first delivery)
        max_retries: Retry budget carried by the message
        deadline: ``time.monotonic()`` value after which the task is timed out
    """

    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    queue: str = "default"
    attempt: int = 0
    max_retries: int = 0
    deadline: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def create(
        cls,
        *,
        message_id: str | None = None,
        queue: str = "default",
        attempt: int = 0,
        max_retries: int = 0,
        timeout: float | None = None,
    ) -> TaskContext:
        return cls(
            message_id=message_id or uuid.uuid4().hex,
            queue=queue,
            attempt=attempt,
            max_retries=max_retries,
            deadline=time.monotonic() + timeout if timeout else None,
        )

    @property
    def is_final_attempt(self) -> bool:
        """True when a failure now will not be redelivered."""
        return self.attempt >= self.max_retries

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise ``TaskCancelledError`` if cancelled or past the deadline."""
        if self._cancelled.is_set():
            raise TaskCancelledError(f"Task {self.message_id} was cancelled")
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise TaskCancelledError(f"Task {self.message_id} exceeded its deadline")


__all__ = ["TaskContext"]
