"""
Structured error types for orderflow.

Every failure raised by the chain orchestrator, the reservation engine and the
order tasks is an ``OrderflowError`` carrying a category and an explicit
``retryable`` flag. The worker runtime reads that flag to decide between
redelivery and dead-lettering, so the classification of an error is part of
its contract and is never rewritten on the way up.

Manifesto:
    - **Typed hierarchy:** One subclass per failure the caller can act on
    - **Explicit retry semantics:** Validation and configuration errors are
      never retried; transient infrastructure errors always are
    - **Rich context:** Errors carry chain/step/order metadata for logging
    - **Error chaining:** The underlying driver exception is kept as ``cause``

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                       OrderflowError                           │
        │  (category, retryable, retry_after, context, cause)           │
        ├───────────────────────────────────────────────────────────────┤
        │  TransientError          ValidationError      ConfigError      │
        │  (retryable=True)        (VALIDATION)         (CONFIG)         │
        │     │                       │                    │             │
        │  StoreUnavailable        InsufficientStock    HandlerNotFound  │
        │  QueueUnavailable        ProductNotFound      UnknownTaskType  │
        │  PaymentGatewayError     OrderNotFound        RegistryError    │
        │  TaskCancelledError      PaymentDeclined      InvalidConfig    │
        │                          RequestValidation                     │
        │                                                                │
        │  OrchestrationError                                            │
        │     │                                                          │
        │  EmptyChainError   PayloadDecodeError   DuplicateTaskError     │
        └───────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Wrap a handler's error in another type before re-raising
    ✅ DO: Let the original classification reach the worker

    ❌ DON'T: Mark stock shortages as retryable
    ✅ DO: Raise InsufficientStockError so the message is not redelivered

Tags:
    error-handling, exception-hierarchy, retry-logic, orderflow

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing and retry decisions."""

    # Infrastructure (usually transient)
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    STORE = "STORE"
    QUEUE = "QUEUE"

    # Data errors
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"

    # Never retryable
    CONFIG = "CONFIG"

    # Application
    ORCHESTRATION = "ORCHESTRATION"
    PAYMENT = "PAYMENT"

    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover the identifiers that show up in almost every
    orderflow log line; anything else goes into ``metadata``.

    Examples:
        >>> ctx = ErrorContext(chain_id="CHAIN_ABC", step=1, task_type="process:payment")
        >>> ctx.to_dict()
        {'chain_id': 'CHAIN_ABC', 'step': 1, 'task_type': 'process:payment'}
    """

    chain_id: str | None = None
    step: int | None = None
    task_type: str | None = None
    message_id: str | None = None
    queue: str | None = None

    order_id: int | None = None
    product_id: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["chain_id", "step", "task_type", "message_id", "queue",
                    "order_id", "product_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OrderflowError(Exception):
    """
    Base exception for all orderflow errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers may
    override either per instance.

    Subclasses that take their own positional parameters store them in
    ``self.args`` so the error can be rebuilt by pickle and by Celery's
    result backend (``cls(*args)``).

    Examples:
        >>> error = OrderflowError("Something went wrong")
        >>> error.retryable
        False
        >>> error.with_context(chain_id="CHAIN_1").context.chain_id
        'CHAIN_1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OrderflowError:
        """
        Add context to this error (fluent API).

        Usage:
            raise InsufficientStockError(...).with_context(order_id=42)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (retried by the worker)
# =============================================================================


class TransientError(OrderflowError):
    """
    Temporary failure that may succeed on redelivery.

    Use for infrastructure that is briefly unreachable. Never use for a
    request that will fail the same way every time.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class StoreUnavailableError(TransientError):
    """The key-value store could not be reached or failed mid-command."""

    default_category = ErrorCategory.STORE


class QueueUnavailableError(TransientError):
    """The job queue broker rejected or could not accept a message."""

    default_category = ErrorCategory.QUEUE


class PaymentGatewayError(TransientError):
    """Payment provider outage or timeout."""

    default_category = ErrorCategory.PAYMENT


class TaskCancelledError(TransientError):
    """The task context was cancelled or its deadline passed."""

    default_category = ErrorCategory.ORCHESTRATION


# =============================================================================
# VALIDATION ERRORS (never retried)
# =============================================================================


class ValidationError(OrderflowError):
    """
    Request or data validation error.

    Never retryable: the input has to change before the operation can succeed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class RequestValidationError(ValidationError):
    """An incoming order request failed schema validation."""

    pass


class InsufficientStockError(ValidationError):
    """A product does not have enough stock to cover the requested quantity."""

    def __init__(self, product_id: int, requested: int, message: str | None = None, **kwargs: Any):
        self.product_id = product_id
        self.requested = requested
        super().__init__(
            message or f"Insufficient stock for product {product_id}",
            field="quantity",
            value=requested,
            constraint="available_stock",
            **kwargs,
        )
        self.context.product_id = product_id
        self.args = (product_id, requested, message)


class ProductNotFoundError(ValidationError):
    """A referenced product has no product or stock record."""

    def __init__(self, product_id: int, **kwargs: Any):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", field="product_id", value=product_id, **kwargs)
        self.context.product_id = product_id
        self.args = (product_id,)


class OrderNotFoundError(ValidationError):
    """A task referenced an order that does not exist."""

    def __init__(self, order_id: int, **kwargs: Any):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", field="order_id", value=order_id, **kwargs)
        self.context.order_id = order_id
        self.args = (order_id,)


class PaymentDeclinedError(ValidationError):
    """The payment provider declined the charge."""

    default_category = ErrorCategory.PAYMENT


# =============================================================================
# CONFIGURATION ERRORS (never retried)
# =============================================================================


class ConfigError(OrderflowError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")
        self.args = (key, value, message)


class HandlerNotFoundError(ConfigError):
    """No handler is registered for a task type."""

    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(f"No handler registered for task type '{task_type}'")
        self.context.task_type = task_type
        self.args = (task_type,)


class UnknownTaskTypeError(ConfigError):
    """A chain references a task type the registry does not know."""

    def __init__(self, task_types: list[str]):
        self.task_types = task_types
        super().__init__(f"Unknown task type(s): {', '.join(task_types)}")
        self.args = (task_types,)


class RegistryError(ConfigError):
    """Invalid registry operation (duplicate or post-freeze registration)."""

    pass


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class OrchestrationError(OrderflowError):
    """Chain construction or orchestration error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class EmptyChainError(OrchestrationError):
    """A chain was dispatched without any tasks."""

    def __init__(self, message: str = "Chain has no tasks"):
        super().__init__(message)


class PayloadDecodeError(OrchestrationError):
    """A queued chain payload could not be decoded."""

    default_category = ErrorCategory.PARSE


class DuplicateTaskError(OrchestrationError):
    """A message with the same unique key is already queued."""

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """
    Check if an error should be redelivered.

    Errors outside the hierarchy are treated as retryable, matching the
    queue's default of retrying any handler failure.
    """
    if isinstance(error, OrderflowError):
        return error.retryable
    return isinstance(error, Exception)


def get_retry_after(error: BaseException) -> int | None:
    """Get retry delay from error, if specified."""
    if isinstance(error, OrderflowError):
        return error.retry_after
    return None


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OrderflowError",
    # Transient
    "TransientError",
    "StoreUnavailableError",
    "QueueUnavailableError",
    "PaymentGatewayError",
    "TaskCancelledError",
    # Validation
    "ValidationError",
    "RequestValidationError",
    "InsufficientStockError",
    "ProductNotFoundError",
    "OrderNotFoundError",
    "PaymentDeclinedError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    "HandlerNotFoundError",
    "UnknownTaskTypeError",
    "RegistryError",
    # Orchestration
    "OrchestrationError",
    "EmptyChainError",
    "PayloadDecodeError",
    "DuplicateTaskError",
    # Utilities
    "is_retryable",
    "get_retry_after",
]
