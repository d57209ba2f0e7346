"""Handler Registry — task type → handler lookup.

Manifesto:
The worker runtime receives ``("process:payment", payload)`` and must find
the code that processes it. The registry decouples registration (once, at
startup) from resolution (per message). It is built by
``orderflow.bootstrap.build_registry``, frozen, and then passed explicitly to
the orchestrator and the worker; there is no module-level singleton.

ARCHITECTURE
────────────
::

    HandlerRegistry
      ├── .register(task_type, handler)   ─ store handler (startup only)
      ├── .freeze()                       ─ reject further registration
      ├── .get(task_type)                 ─ lookup, HandlerNotFoundError if absent
      ├── .has(task_type)                 ─ existence check
      └── .list_types()                   ─ all registered task types

    register_task(task_type, registry)    ─ decorator form of .register

A handler is anything with ``process(ctx, message)``; a plain callable with
the same signature is wrapped in :class:`FunctionHandler`.

Tags:
    orderflow, execution, registry, handler-registry, lookup

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from orderflow.core.errors import HandlerNotFoundError, RegistryError
from orderflow.execution.context import TaskContext
from orderflow.execution.message import TaskMessage


@runtime_checkable
class TaskHandler(Protocol):
    """Processes one message. Raising signals failure to the queue."""

    def process(self, ctx: TaskContext, message: TaskMessage) -> None: ...


class FunctionHandler:
    """Adapts ``fn(ctx, message)`` to the ``TaskHandler`` protocol."""

    def __init__(self, fn: Callable[[TaskContext, TaskMessage], Any]):
        self.fn = fn

    def process(self, ctx: TaskContext, message: TaskMessage) -> None:
        self.fn(ctx, message)

    def __repr__(self) -> str:
        return f"FunctionHandler({getattr(self.fn, '__name__', self.fn)!r})"


class HandlerRegistry:
    """Injectable handler registry.

    Example:
        >>> registry = HandlerRegistry()
        >>> @register_task("inventory:check", registry)
        ... def check(ctx, message):
        ...     ...
        >>> registry.freeze()
        >>> registry.get("inventory:check")
        FunctionHandler('check')
    """

    def __init__(self) -> None:
        self._handlers: dict[str, TaskHandler] = {}
        self._descriptions: dict[str, str] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def register(
        self,
        task_type: str,
        handler: TaskHandler | Callable[[TaskContext, TaskMessage], Any],
        description: str = "",
    ) -> None:
        """Register a handler for ``task_type``.

        Raises:
            RegistryError: on an empty task type, a duplicate registration, or
                registration after :meth:`freeze`.
        """
        if not task_type:
            raise RegistryError("Task type must be a non-empty string")
        if not isinstance(handler, TaskHandler):
            if not callable(handler):
                raise RegistryError(f"Handler for '{task_type}' is neither callable nor has process()")
            handler = FunctionHandler(handler)
        with self._lock:
            if self._frozen:
                raise RegistryError(f"Registry is frozen; cannot register '{task_type}'")
            if task_type in self._handlers:
                raise RegistryError(f"Handler already registered for '{task_type}'")
            self._handlers[task_type] = handler
            self._descriptions[task_type] = description

    def freeze(self) -> None:
        """Make the registry read-only."""
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, task_type: str) -> TaskHandler:
        handler = self._handlers.get(task_type)
        if handler is None:
            raise HandlerNotFoundError(task_type)
        return handler

    def has(self, task_type: str) -> bool:
        return task_type in self._handlers

    def list_types(self) -> list[str]:
        return sorted(self._handlers)

    def describe(self) -> list[dict[str, str]]:
        """Task types with their descriptions, for the CLI."""
        return [
            {"task_type": t, "handler": repr(self._handlers[t]), "description": self._descriptions[t]}
            for t in self.list_types()
        ]

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._handlers


def register_task(
    task_type: str,
    registry: HandlerRegistry,
    description: str = "",
) -> Callable:
    """Decorator to register a function for ``task_type``."""

    def decorator(fn: Callable) -> Callable:
        registry.register(task_type, fn, description=description or (fn.__doc__ or "").strip())
        return fn

    return decorator


__all__ = [
    "TaskHandler",
    "FunctionHandler",
    "HandlerRegistry",
    "register_task",
]
