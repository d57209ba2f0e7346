"""Payment gateway port, a configurable fake adapter, and the payment service.

The gateway port keeps the payment step independent of any provider SDK;
:class:`FakePaymentGateway` is the adapter used in development and tests.

A declined charge is a business outcome (``PaymentDeclinedError``, never
retried); a gateway that cannot be reached is infrastructure
(``PaymentGatewayError``, retried by the worker).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from orderflow.core.errors import PaymentDeclinedError, PaymentGatewayError
from orderflow.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment charge attempt."""

    success: bool
    gateway_transaction_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_charge(self, amount: Decimal, currency: str, idempotency_key: str) -> ChargeResult:
        """Create a charge. Repeating a key must not charge twice."""
        ...


class FakePaymentGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.unavailable: bool = False
        self.calls: list[dict] = []
        self._charges: dict[str, ChargeResult] = {}

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        *,
        unavailable: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unavailable = unavailable

    def create_charge(self, amount: Decimal, currency: str, idempotency_key: str) -> ChargeResult:
        self.calls.append(
            {"method": "create_charge", "amount": amount, "currency": currency, "idempotency_key": idempotency_key}
        )
        if self.unavailable:
            raise ConnectionError("payment gateway unreachable")
        if idempotency_key in self._charges:
            return self._charges[idempotency_key]

        if self.should_succeed:
            result = ChargeResult(
                success=True,
                gateway_transaction_id=f"fake_txn_{uuid4().hex[:12]}",
                gateway_status="succeeded",
            )
            self._charges[idempotency_key] = result
            return result
        return ChargeResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)


class PaymentService:
    """Charges orders through a gateway and classifies the outcome."""

    def __init__(self, gateway: PaymentGateway, *, currency: str = "USD") -> None:
        self.gateway = gateway
        self.currency = currency

    def charge_order(self, order_id: int, amount: Decimal) -> ChargeResult:
        """Charge ``amount`` for ``order_id``.

        Raises:
            PaymentDeclinedError: the gateway declined the charge.
            PaymentGatewayError: the gateway could not be reached.
        """
        try:
            result = self.gateway.create_charge(amount, self.currency, idempotency_key=f"order-{order_id}")
        except OSError as exc:
            raise PaymentGatewayError(
                f"Payment gateway error for order {order_id}: {exc}", cause=exc
            ).with_context(order_id=order_id) from exc

        if not result.success:
            logger.info("payment.declined", order_id=order_id, reason=result.failure_reason)
            raise PaymentDeclinedError(
                f"Payment declined for order {order_id}: {result.failure_reason or 'unknown reason'}"
            ).with_context(order_id=order_id)

        logger.info(
            "payment.charged",
            order_id=order_id,
            amount=str(amount),
            transaction_id=result.gateway_transaction_id,
        )
        return result


__all__ = ["ChargeResult", "PaymentGateway", "FakePaymentGateway", "PaymentService"]
