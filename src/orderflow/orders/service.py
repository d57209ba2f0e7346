"""Order creation — persist the order, then hand it to the processing chain.

``OrderService.create_order`` is synchronous only up to dispatch: it
validates the request, writes the order and its items as ``pending``, and
enqueues the two-step chain. Whether stock is reserved and payment taken is
decided later by the workers; the caller gets the pending order and the
chain id to correlate with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from orderflow.core.errors import ProductNotFoundError, RequestValidationError
from orderflow.core.events import EventBus
from orderflow.core.logging import get_logger
from orderflow.core.orm.tables import OrderTable, ProductStatus
from orderflow.core.repositories import NewOrder, NewOrderItem, OrderRepository, ProductRepository
from orderflow.execution.queue import JobQueueClient
from orderflow.execution.registry import HandlerRegistry
from orderflow.orchestration.chain import Chain, ChainCallback, ChainOptions, DispatchedChain
from orderflow.orders.tasks import InventoryCheckTask, ProcessPaymentTask

logger = get_logger(__name__)


class OrderItemRequest(BaseModel):
    """One requested line item."""

    model_config = ConfigDict(extra="forbid")

    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., gt=0)


class CreateOrderRequest(BaseModel):
    """Incoming order request."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    user_id: int = Field(..., ge=1)
    items: list[OrderItemRequest] = Field(..., min_length=1)
    shipping_address: str = Field(..., min_length=1)
    billing_address: str = Field(..., min_length=1)
    notes: str | None = Field(default=None, max_length=2000)


@dataclass(frozen=True)
class OrderChainPolicy:
    queue: str = "order_processing_chain"
    max_retries: int = 3
    timeout: float = 180.0


@dataclass(frozen=True)
class CreatedOrder:
    order: OrderTable
    chain: DispatchedChain


class OrderService:
    def __init__(
        self,
        products: ProductRepository,
        orders: OrderRepository,
        queue: JobQueueClient,
        *,
        registry: HandlerRegistry | None = None,
        events: EventBus | None = None,
        policy: OrderChainPolicy | None = None,
    ) -> None:
        self.products = products
        self.orders = orders
        self.queue = queue
        self.registry = registry
        self.events = events
        self.policy = policy or OrderChainPolicy()

    @staticmethod
    def parse_request(data: dict[str, Any]) -> CreateOrderRequest:
        """Validate a raw request dict, raising the orderflow validation error."""
        try:
            return CreateOrderRequest.model_validate(data)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            raise RequestValidationError(
                f"Invalid order request: {first['msg']}",
                field=".".join(str(p) for p in first["loc"]),
                cause=exc,
            ) from exc

    def create_order(
        self,
        request: CreateOrderRequest | dict[str, Any],
        *,
        on_success: ChainCallback | None = None,
        on_failure: ChainCallback | None = None,
    ) -> CreatedOrder:
        """Persist a pending order and dispatch its processing chain.

        Raises:
            RequestValidationError: the request failed schema validation.
            ProductNotFoundError: a product does not exist or is not active.
            QueueUnavailableError: the chain could not be enqueued (the order stays pending).
        """
        if not isinstance(request, CreateOrderRequest):
            request = self.parse_request(request)

        products = self.products.find_by_ids(i.product_id for i in request.items)
        for item in request.items:
            product = products.get(item.product_id)
            if product is None or product.status != ProductStatus.ACTIVE.value:
                raise ProductNotFoundError(item.product_id)

        order = self.orders.create_with_items(
            NewOrder(
                user_id=request.user_id,
                shipping_address=request.shipping_address,
                billing_address=request.billing_address,
                notes=request.notes,
                items=[
                    NewOrderItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=products[item.product_id].price,
                    )
                    for item in request.items
                ],
            )
        )
        logger.info("order.created", order_id=order.id, user_id=order.user_id, total=str(order.total_amount))

        chain = (
            Chain(
                self.queue,
                registry=self.registry,
                events=self.events,
                options=ChainOptions(
                    max_retries=self.policy.max_retries,
                    timeout=self.policy.timeout,
                    queue=self.policy.queue,
                ),
            )
            .then(InventoryCheckTask(order_id=order.id))
            .then(ProcessPaymentTask(order_id=order.id))
            .with_context(order_id=order.id)
        )
        if on_success is not None:
            chain.on_success(on_success)
        if on_failure is not None:
            chain.on_failure(on_failure)

        dispatched = chain.dispatch()
        logger.info("order.chain_dispatched", order_id=order.id, chain_id=dispatched.chain_id)
        return CreatedOrder(order=order, chain=dispatched)


__all__ = [
    "CreateOrderRequest",
    "OrderItemRequest",
    "OrderChainPolicy",
    "CreatedOrder",
    "OrderService",
]
