"""The queue-level message shape shared by every task type."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TaskMessage:
    """A task type plus its opaque payload bytes.

    This is what a handler receives; the payload is only ever interpreted by
    the handler registered for ``task_type``.
    """

    task_type: str
    payload: bytes = b""

    @classmethod
    def from_json(cls, task_type: str, data: Any) -> TaskMessage:
        return cls(task_type=task_type, payload=json.dumps(data, separators=(",", ":")).encode())

    def json(self) -> Any:
        """Decode the payload as JSON (``None`` for an empty payload)."""
        if not self.payload:
            return None
        return json.loads(self.payload)


__all__ = ["TaskMessage"]
