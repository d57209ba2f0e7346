"""Tests for orderflow.orchestration.chain — builder and dispatch."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from orderflow.core.errors import EmptyChainError, QueueUnavailableError, UnknownTaskTypeError
from orderflow.core.events import CHAIN_COMPLETED, CHAIN_FAILED, Event
from orderflow.execution.registry import HandlerRegistry
from orderflow.orchestration.chain import Chain, ChainOptions
from orderflow.orchestration.payload import ORCHESTRATOR_TASK_TYPE, ChainPayload
from orderflow.orchestration.task import GenericTask


def _event(event_type: str, chain_id: str) -> Event:
    return Event(event_type=event_type, source="test", correlation_id=chain_id)


class TestChainOptions:
    def test_zero_values_fall_back_to_defaults(self):
        assert ChainOptions(max_retries=0, timeout=0, queue="").normalized() == ChainOptions()

    def test_explicit_values_kept(self):
        opts = ChainOptions(max_retries=5, timeout=60, queue="critical").normalized()
        assert (opts.max_retries, opts.timeout, opts.queue) == (5, 60, "critical")


class TestBuilder:
    def test_defaults(self, queue):
        payload = Chain(queue).then(GenericTask("a")).build()
        assert (payload.max_retries, payload.timeout, payload.queue) == (3, 300.0, "default")

    def test_fluent_settings(self, queue):
        payload = (
            Chain(queue)
            .then(GenericTask("a", 1))
            .then(GenericTask("b", 2))
            .on_queue("critical")
            .max_retries(5)
            .timeout(timedelta(minutes=3))
            .with_context(order_id=7)
            .build()
        )
        assert [t.type for t in payload.tasks] == ["a", "b"]
        assert (payload.max_retries, payload.timeout, payload.queue) == (5, 180.0, "critical")
        assert payload.context == {"order_id": 7}

    def test_options_seed_builder(self, queue):
        payload = Chain(queue, options=ChainOptions(queue="payments", timeout=30)).then(GenericTask("a")).build()
        assert payload.queue == "payments"
        assert payload.timeout == 30

    def test_max_retries_zero_allowed(self, queue):
        assert Chain(queue).then(GenericTask("a")).max_retries(0).build().max_retries == 0

    @pytest.mark.parametrize(
        "configure",
        [
            lambda c: c.on_queue(""),
            lambda c: c.max_retries(-1),
            lambda c: c.timeout(0),
            lambda c: c.timeout(timedelta(seconds=-5)),
        ],
    )
    def test_invalid_settings(self, queue, configure):
        with pytest.raises(ValueError):
            configure(Chain(queue))

    def test_tasks_snapshot(self, queue):
        chain = Chain(queue).then(GenericTask("a"))
        chain.tasks.append(GenericTask("b"))
        assert len(chain.tasks) == 1

    def test_empty_chain(self, queue):
        with pytest.raises(EmptyChainError):
            Chain(queue).dispatch()
        assert len(queue) == 0

    def test_unknown_task_types_rejected_with_registry(self, queue):
        registry = HandlerRegistry()
        registry.register("known", lambda ctx, msg: None)
        chain = Chain(queue, registry=registry).then(GenericTask("known")).then(GenericTask("nope"))
        with pytest.raises(UnknownTaskTypeError) as exc_info:
            chain.dispatch()
        assert exc_info.value.task_types == ["nope"]
        assert len(queue) == 0


class TestDispatch:
    def test_enqueues_one_orchestrator_message(self, queue):
        result = Chain(queue).then(GenericTask("a")).then(GenericTask("b")).on_queue("critical").dispatch()

        assert len(queue) == 1
        message = queue.messages[0]
        assert message.id == result.message_id
        assert message.task_type == ORCHESTRATOR_TASK_TYPE
        assert message.options.queue == "critical"
        assert message.options.process_after == 0.0

        payload = ChainPayload.from_bytes(message.payload)
        assert payload.chain_id == result.chain_id
        assert payload.current_step == 0

    def test_each_dispatch_gets_new_chain_id(self, queue):
        chain = Chain(queue).then(GenericTask("a"))
        assert chain.dispatch().chain_id != chain.dispatch().chain_id

    def test_queue_failure_propagates_and_unsubscribes(self, bus):
        failing = MagicMock()
        failing.enqueue.side_effect = QueueUnavailableError("broker down")
        chain = Chain(failing, events=bus).then(GenericTask("a")).on_success(lambda e: None)

        with pytest.raises(QueueUnavailableError):
            chain.dispatch()
        assert bus.subscription_count == 0


class TestCallbacks:
    def test_success_callback_fires_once_for_own_chain(self, queue, bus):
        successes, failures = [], []
        result = (
            Chain(queue, events=bus)
            .then(GenericTask("a"))
            .on_success(successes.append)
            .on_failure(failures.append)
            .dispatch()
        )

        bus.publish(_event(CHAIN_COMPLETED, "CHAIN_OTHER"))
        assert successes == []

        bus.publish(_event(CHAIN_COMPLETED, result.chain_id))
        bus.publish(_event(CHAIN_COMPLETED, result.chain_id))
        assert len(successes) == 1
        assert failures == []
        assert bus.subscription_count == 0

    def test_failure_callback(self, queue, bus):
        failures = []
        result = Chain(queue, events=bus).then(GenericTask("a")).on_failure(failures.append).dispatch()
        bus.publish(_event(CHAIN_FAILED, result.chain_id))
        assert [e.correlation_id for e in failures] == [result.chain_id]

    def test_no_callbacks_no_subscription(self, queue, bus):
        Chain(queue, events=bus).then(GenericTask("a")).dispatch()
        assert bus.subscription_count == 0

    def test_callbacks_without_bus_are_inert(self, queue):
        result = Chain(queue).then(GenericTask("a")).on_success(lambda e: None).dispatch()
        assert result.chain_id
