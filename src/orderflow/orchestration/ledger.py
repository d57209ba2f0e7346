"""Completed-step ledger for duplicate orchestrator deliveries.

The queue delivers at least once. If a worker crashes after a step handler
succeeded but before the continuation was enqueued, the same orchestrator
message is delivered again and would re-run the step. The ledger records
``(chain_id, step)`` once the handler has returned so the redelivery skips
straight to enqueueing the continuation.

It does not cover a crash *inside* the handler; step handlers must still be
idempotent.
"""

from __future__ import annotations

from orderflow.core.store import KeyValueStore


class StepLedger:
    def __init__(self, store: KeyValueStore, *, ttl_seconds: int = 86400) -> None:
        self._store = store
        self._ttl = ttl_seconds

    @staticmethod
    def key(chain_id: str, step: int) -> str:
        return f"chain:{chain_id}:step:{step}:done"

    def is_done(self, chain_id: str, step: int) -> bool:
        return self._store.exists(self.key(chain_id, step))

    def mark_done(self, chain_id: str, step: int) -> None:
        self._store.set(self.key(chain_id, step), "1", ttl_seconds=self._ttl)
