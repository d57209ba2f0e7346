"""Tests for orderflow.orchestration.payload — the chain wire format."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import ClassVar

import pytest

from orderflow.core.errors import PayloadDecodeError
from orderflow.orchestration.payload import (
    ChainDone,
    ChainPayload,
    NextStep,
    SerializedTask,
    build_payload,
    new_chain_id,
    next_step,
)
from orderflow.orchestration.task import BaseTask, GenericTask


@dataclass
class ReserveTask(BaseTask):
    task_type: ClassVar[str] = "inventory:check"
    order_id: int


def _payload(steps=2, **kwargs) -> ChainPayload:
    return build_payload([GenericTask(f"step:{i}", {"i": i}) for i in range(steps)], **kwargs)


class TestChainId:
    def test_format(self):
        assert re.fullmatch(r"CHAIN_[0-9A-F]{8}(-[0-9A-F]{4}){3}-[0-9A-F]{12}", new_chain_id())

    def test_unique(self):
        assert len({new_chain_id() for _ in range(100)}) == 100


class TestBuildPayload:
    def test_initial_state(self):
        payload = build_payload(
            [ReserveTask(order_id=42)], max_retries=5, timeout=180, queue="order_processing_chain"
        )
        assert payload.chain_id.startswith("CHAIN_")
        assert payload.current_step == 0
        assert payload.tasks == (SerializedTask("inventory:check", {"order_id": 42}),)
        assert (payload.max_retries, payload.timeout, payload.queue) == (5, 180, "order_processing_chain")
        assert payload.context is None

    def test_non_json_payload_rejected(self):
        with pytest.raises(TypeError):
            build_payload([GenericTask("x", {"when": object()})])

    def test_missing_task_type_rejected(self):
        with pytest.raises(ValueError):
            build_payload([GenericTask("", None)])


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"chain_id": ""},
            {"current_step": -1},
            {"current_step": 3},
            {"current_step": True},
            {"max_retries": -1},
            {"timeout": 0},
            {"queue": ""},
        ],
    )
    def test_invalid_fields(self, overrides):
        fields = dict(chain_id="CHAIN_X", tasks=(SerializedTask("a"), SerializedTask("b")))
        fields.update(overrides)
        with pytest.raises(ValueError):
            ChainPayload(**fields)

    def test_step_equal_to_length_is_complete(self):
        payload = ChainPayload(chain_id="CHAIN_X", tasks=(SerializedTask("a"),), current_step=1)
        assert payload.is_complete
        with pytest.raises(IndexError):
            payload.current_task


class TestAdvance:
    def test_advance_returns_copy(self):
        payload = _payload()
        advanced = payload.advance()
        assert advanced.current_step == 1
        assert payload.current_step == 0
        assert advanced.chain_id == payload.chain_id
        assert advanced.tasks == payload.tasks

    def test_advance_past_end_rejected(self):
        with pytest.raises(ValueError):
            _payload(steps=1).advance().advance()

    def test_next_step(self):
        payload = _payload(steps=2)
        first = next_step(payload)
        assert isinstance(first, NextStep)
        assert first.payload.current_step == 1
        done = next_step(first.payload)
        assert isinstance(done, ChainDone)
        assert done.payload.is_complete


class TestWireFormat:
    def test_field_names(self):
        payload = _payload(steps=1, timeout=180, context={"order_id": 9})
        data = json.loads(payload.to_bytes())
        assert data == {
            "chain_id": payload.chain_id,
            "tasks": [{"type": "step:0", "payload": {"i": 0}}],
            "current_step": 0,
            "max_retries": 3,
            "timeout": 180,
            "queue": "default",
            "context": {"order_id": 9},
        }

    def test_context_omitted_when_empty(self):
        assert "context" not in json.loads(_payload().to_bytes())

    def test_decode_preserves_everything(self):
        payload = _payload(steps=3, max_retries=1, timeout=45.5, queue="critical", context={"k": "v"}).advance()
        decoded = ChainPayload.from_bytes(payload.to_bytes())
        assert decoded == payload
        assert decoded.context == {"k": "v"}

    def test_decode_from_str(self):
        payload = _payload()
        assert ChainPayload.from_bytes(payload.to_bytes().decode()) == payload

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[]",
            b'{"chain_id":"C"}',
            b'{"chain_id":"C","tasks":"x","current_step":0,"max_retries":3,"timeout":1,"queue":"q"}',
            b'{"chain_id":"C","tasks":[{"payload":1}],"current_step":0,"max_retries":3,"timeout":1,"queue":"q"}',
            b'{"chain_id":"C","tasks":[{"type":"a"}],"current_step":5,"max_retries":3,"timeout":1,"queue":"q"}',
            b'{"chain_id":"C","tasks":[{"type":"a"}],"current_step":0,"max_retries":3,"timeout":1,"queue":"q","context":[1]}',
        ],
    )
    def test_malformed_payloads(self, raw):
        with pytest.raises(PayloadDecodeError):
            ChainPayload.from_bytes(raw)

    def test_serialized_task_message(self):
        message = SerializedTask("inventory:check", {"order_id": 1}).to_message()
        assert message.task_type == "inventory:check"
        assert message.json() == {"order_id": 1}
