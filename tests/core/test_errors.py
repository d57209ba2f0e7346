"""Tests for orderflow.core.errors module."""

import pickle

import pytest

from orderflow.core.errors import (
    ConfigError,
    DuplicateTaskError,
    EmptyChainError,
    ErrorCategory,
    ErrorContext,
    HandlerNotFoundError,
    InsufficientStockError,
    InvalidConfigError,
    OrderflowError,
    OrderNotFoundError,
    PaymentDeclinedError,
    PaymentGatewayError,
    PayloadDecodeError,
    ProductNotFoundError,
    QueueUnavailableError,
    RegistryError,
    RequestValidationError,
    StoreUnavailableError,
    TaskCancelledError,
    TransientError,
    UnknownTaskTypeError,
    ValidationError,
    get_retry_after,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context(self):
        ctx = ErrorContext()
        assert ctx.chain_id is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_includes_set_fields_and_metadata(self):
        ctx = ErrorContext(chain_id="CHAIN_1", step=0, order_id=42, metadata={"attempt": 2})
        assert ctx.to_dict() == {"chain_id": "CHAIN_1", "step": 0, "order_id": 42, "attempt": 2}


class TestOrderflowError:
    """Test the base error."""

    def test_defaults(self):
        err = OrderflowError("boom")
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False
        assert err.retry_after is None

    def test_overrides(self):
        err = OrderflowError("boom", category=ErrorCategory.DATABASE, retryable=True, retry_after=30)
        assert err.category == ErrorCategory.DATABASE
        assert err.retryable is True
        assert err.retry_after == 30

    def test_cause_is_chained(self):
        cause = RuntimeError("driver")
        err = OrderflowError("wrapped", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is cause

    def test_with_context_sets_known_fields_and_metadata(self):
        err = OrderflowError("x").with_context(chain_id="CHAIN_9", order_id=7, region="eu")
        assert err.context.chain_id == "CHAIN_9"
        assert err.context.order_id == 7
        assert err.context.metadata == {"region": "eu"}

    def test_with_context_returns_same_instance(self):
        err = OrderflowError("x")
        assert err.with_context(step=1) is err

    def test_to_dict(self):
        err = OrderflowError("boom", retry_after=5, cause=ValueError("bad")).with_context(step=2)
        data = err.to_dict()
        assert data["error_type"] == "OrderflowError"
        assert data["message"] == "boom"
        assert data["category"] == "INTERNAL"
        assert data["retryable"] is False
        assert data["retry_after"] == 5
        assert data["context"] == {"step": 2}
        assert data["cause"] == "bad"


class TestTransientErrors:
    @pytest.mark.parametrize(
        "cls,category",
        [
            (StoreUnavailableError, ErrorCategory.STORE),
            (QueueUnavailableError, ErrorCategory.QUEUE),
            (PaymentGatewayError, ErrorCategory.PAYMENT),
            (TaskCancelledError, ErrorCategory.ORCHESTRATION),
        ],
    )
    def test_retryable_with_category(self, cls, category):
        err = cls("down")
        assert isinstance(err, TransientError)
        assert err.retryable is True
        assert err.category == category

    def test_retryable_can_be_disabled(self):
        assert StoreUnavailableError("corrupt", retryable=False).retryable is False


class TestValidationErrors:
    def test_validation_error_fields(self):
        err = ValidationError("bad qty", field="quantity", value=0, constraint="> 0")
        data = err.to_dict()
        assert err.retryable is False
        assert data["field"] == "quantity"
        assert data["value"] == "0"
        assert data["constraint"] == "> 0"

    def test_insufficient_stock(self):
        err = InsufficientStockError(3, 5)
        assert err.product_id == 3
        assert err.requested == 5
        assert err.context.product_id == 3
        assert "product 3" in str(err)
        assert err.retryable is False

    def test_product_not_found(self):
        err = ProductNotFoundError(11)
        assert str(err) == "Product 11 not found"
        assert err.context.product_id == 11

    def test_order_not_found(self):
        err = OrderNotFoundError(4)
        assert err.order_id == 4
        assert err.context.order_id == 4

    def test_payment_declined_is_payment_category_and_final(self):
        err = PaymentDeclinedError("declined")
        assert err.category == ErrorCategory.PAYMENT
        assert err.retryable is False


class TestConfigAndOrchestrationErrors:
    def test_handler_not_found(self):
        err = HandlerNotFoundError("mystery:task")
        assert isinstance(err, ConfigError)
        assert err.retryable is False
        assert "mystery:task" in str(err)
        assert err.context.task_type == "mystery:task"

    def test_unknown_task_types_listed(self):
        err = UnknownTaskTypeError(["a", "b"])
        assert err.task_types == ["a", "b"]
        assert "a, b" in str(err)

    def test_empty_chain_default_message(self):
        assert str(EmptyChainError()) == "Chain has no tasks"

    def test_payload_decode_is_parse_category(self):
        err = PayloadDecodeError("bad json")
        assert err.category == ErrorCategory.PARSE
        assert err.retryable is False


class TestUtilities:
    def test_is_retryable_for_hierarchy(self):
        assert is_retryable(StoreUnavailableError("x")) is True
        assert is_retryable(InsufficientStockError(1, 1)) is False

    def test_is_retryable_for_foreign_exceptions(self):
        assert is_retryable(RuntimeError("x")) is True

    def test_is_retryable_for_base_exception(self):
        assert is_retryable(KeyboardInterrupt()) is False

    def test_get_retry_after(self):
        assert get_retry_after(StoreUnavailableError("x", retry_after=12)) == 12
        assert get_retry_after(RuntimeError("x")) is None


class TestSerialization:
    """Errors must survive pickle and Celery's ``cls(*args)`` rebuild."""

    @pytest.mark.parametrize(
        "error",
        [
            OrderflowError("boom", retryable=True),
            StoreUnavailableError("redis down"),
            QueueUnavailableError("broker down"),
            PaymentGatewayError("gateway timeout"),
            TaskCancelledError("cancelled"),
            ValidationError("bad", field="quantity", value=0),
            RequestValidationError("bad request", field="items"),
            InsufficientStockError(3, 5),
            InsufficientStockError(3, 5, message="custom"),
            ProductNotFoundError(11),
            OrderNotFoundError(42),
            PaymentDeclinedError("Card declined"),
            InvalidConfigError("queue_backend", "memory"),
            HandlerNotFoundError("mystery:task"),
            UnknownTaskTypeError(["a", "b"]),
            RegistryError("frozen"),
            EmptyChainError(),
            PayloadDecodeError("not json"),
            DuplicateTaskError("already queued"),
        ],
        ids=lambda e: type(e).__name__,
    )
    def test_pickle_round_trip(self, error):
        restored = pickle.loads(pickle.dumps(error))
        assert type(restored) is type(error)
        assert restored.message == error.message
        assert str(restored) == str(error)
        assert restored.category == error.category
        assert restored.retryable == error.retryable

    def test_pickle_keeps_fields_and_context(self):
        err = InsufficientStockError(3, 5).with_context(order_id=9)
        restored = pickle.loads(pickle.dumps(err))
        assert restored.product_id == 3
        assert restored.requested == 5
        assert restored.context.order_id == 9
        assert restored.context.product_id == 3

    @pytest.mark.parametrize(
        "error",
        [
            InsufficientStockError(3, 5),
            ProductNotFoundError(11),
            OrderNotFoundError(42),
            HandlerNotFoundError("mystery:task"),
            UnknownTaskTypeError(["a", "b"]),
            InvalidConfigError("queue_backend", "memory"),
        ],
        ids=lambda e: type(e).__name__,
    )
    def test_rebuild_from_args(self, error):
        rebuilt = type(error)(*error.args)
        assert rebuilt.message == error.message
