"""Tests for orderflow.orders.service — order creation and chain dispatch."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from orderflow.core.errors import ProductNotFoundError, QueueUnavailableError, RequestValidationError
from orderflow.core.orm.tables import OrderStatus, ProductStatus
from orderflow.orchestration.payload import ORCHESTRATOR_TASK_TYPE, ChainPayload
from orderflow.orders.service import CreateOrderRequest, OrderChainPolicy, OrderService


class TestParseRequest:
    def test_valid(self, order_request):
        request = OrderService.parse_request(order_request((1, 2)))
        assert isinstance(request, CreateOrderRequest)
        assert request.items[0].quantity == 2

    @pytest.mark.parametrize(
        "mutate,field",
        [
            (lambda r: r.update(items=[]), "items"),
            (lambda r: r["items"][0].update(quantity=0), "items.0.quantity"),
            (lambda r: r.update(shipping_address=""), "shipping_address"),
            (lambda r: r.update(extra="nope"), "extra"),
            (lambda r: r.pop("user_id"), "user_id"),
        ],
    )
    def test_invalid(self, order_request, mutate, field):
        raw = order_request((1, 2))
        mutate(raw)
        with pytest.raises(RequestValidationError) as exc_info:
            OrderService.parse_request(raw)
        assert exc_info.value.field == field
        assert exc_info.value.retryable is False


class TestCreateOrder:
    def test_persists_pending_order_and_dispatches_chain(self, wired, catalog, order_request):
        a, b = catalog(price="2.00"), catalog(price="3.50")
        created = wired.service.create_order(order_request((a.id, 2), (b.id, 1)))

        order = created.order
        assert order.status == OrderStatus.PENDING.value
        assert order.total_amount == Decimal("7.50")

        assert len(wired.queue) == 1
        message = wired.queue.messages[0]
        assert message.task_type == ORCHESTRATOR_TASK_TYPE
        assert message.options.queue == "order_processing_chain"

        payload = ChainPayload.from_bytes(message.payload)
        assert payload.chain_id == created.chain.chain_id
        assert [t.type for t in payload.tasks] == ["inventory:check", "process:payment"]
        assert [t.payload for t in payload.tasks] == [{"order_id": order.id}] * 2
        assert (payload.max_retries, payload.timeout) == (3, 180.0)
        assert payload.context == {"order_id": order.id}

    def test_unknown_product(self, wired, order_request):
        with pytest.raises(ProductNotFoundError):
            wired.service.create_order(order_request((999, 1)))
        assert len(wired.queue) == 0

    def test_inactive_product(self, wired, catalog, order_request):
        product = catalog(status=ProductStatus.DISCONTINUED)
        with pytest.raises(ProductNotFoundError):
            wired.service.create_order(order_request((product.id, 1)))

    def test_custom_policy(self, products, orders, queue, catalog, order_request):
        service = OrderService(products, orders, queue, policy=OrderChainPolicy(queue="critical", timeout=60))
        service.create_order(order_request((catalog().id, 1)))
        payload = ChainPayload.from_bytes(queue.messages[0].payload)
        assert (payload.queue, payload.timeout) == ("critical", 60)

    def test_queue_outage_leaves_order_pending(self, products, orders, catalog, order_request):
        queue = MagicMock()
        queue.enqueue.side_effect = QueueUnavailableError("broker down")
        service = OrderService(products, orders, queue)

        with pytest.raises(QueueUnavailableError):
            service.create_order(order_request((catalog().id, 1)))

        assert orders.get_with_items(1).status == OrderStatus.PENDING.value
