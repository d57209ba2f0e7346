"""Key-value store backends for inventory counters and dedup keys.

Provides a ``KeyValueStore`` protocol with two implementations:

- ``InMemoryStore``: single-process, lock-guarded dict. Tests and
  local development.
- ``RedisStore``: shared counters for every worker process.

Multi-key atomic operations are expressed as :class:`AtomicScript`, which
carries the Lua source executed by Redis and an equivalent Python function
that ``InMemoryStore`` runs while holding its lock. Either way no other
command can interleave with a script.

Every Redis failure surfaces as :class:`StoreUnavailableError`, which the
worker treats as transient.

Example:
    store = InMemoryStore()
    store.set_if_absent("product:1:inventory:7", 10)
    store.decr_by("product:1:inventory:7", 3)
    store.get("product:1:inventory:7")   # "7"
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import redis

from orderflow.core.errors import StoreUnavailableError
from orderflow.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AtomicScript:
    """A server-side script plus its in-process equivalent.

    ``local`` receives the store (lock already held), the keys and the
    string arguments, and must return the same integer the Lua script would.
    """

    name: str
    source: str
    local: Callable[["InMemoryStore", Sequence[str], Sequence[str]], int]


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for the counter store.

    Values are stored and returned as strings, matching Redis semantics.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None: ...

    def set_if_absent(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> bool:
        """Write only when the key does not exist. Returns True if written."""
        ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...

    def incr_by(self, key: str, amount: int) -> int: ...

    def decr_by(self, key: str, amount: int) -> int: ...

    def eval_script(self, script: AtomicScript, keys: Sequence[str], args: Sequence[Any]) -> int:
        """Run ``script`` atomically and return its integer result."""
        ...


# ------------------------------------------------------------------ #
# In-Memory Store
# ------------------------------------------------------------------ #


class InMemoryStore:
    """Thread-safe in-memory store.

    Scripts run under the same re-entrant lock as single-key commands, so a
    script may call ``get``/``decr_by`` on the store it was handed.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.RLock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() > expires_at:
            del self._data[key]
            return None
        return value

    @staticmethod
    def _expiry(ttl_seconds: int | None) -> float | None:
        return time.monotonic() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        with self._lock:
            self._data[key] = (str(value), self._expiry(ttl_seconds))

    def set_if_absent(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (str(value), self._expiry(ttl_seconds))
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def incr_by(self, key: str, amount: int) -> int:
        with self._lock:
            current = self._live(key)
            try:
                new_value = int(current or 0) + amount
            except ValueError as exc:
                raise StoreUnavailableError(
                    f"Value at {key} is not an integer", retryable=False, cause=exc
                ) from exc
            expires_at = self._data[key][1] if key in self._data else None
            self._data[key] = (str(new_value), expires_at)
            return new_value

    def decr_by(self, key: str, amount: int) -> int:
        return self.incr_by(key, -amount)

    def eval_script(self, script: AtomicScript, keys: Sequence[str], args: Sequence[Any]) -> int:
        with self._lock:
            return int(script.local(self, list(keys), [str(a) for a in args]))

    def clear(self) -> None:
        """Remove all keys (tests only)."""
        with self._lock:
            self._data.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._data)


# ------------------------------------------------------------------ #
# Redis Store
# ------------------------------------------------------------------ #


class RedisStore:
    """Redis-backed store shared by every worker process.

    Scripts are registered once per client and invoked via ``EVALSHA``
    (redis-py falls back to ``EVAL`` when the script cache was flushed).

    Example:
        store = RedisStore("redis://localhost:6379/0")
        store.set_if_absent("product:1:inventory:7", 10)
    """

    def __init__(self, url: str = "redis://localhost:6379/0", *, client: Any | None = None):
        self._client = client if client is not None else redis.from_url(url, decode_responses=True)
        self._scripts: dict[str, Any] = {}
        self._scripts_lock = threading.Lock()

    @property
    def client(self) -> Any:
        return self._client

    def _call(self, op: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except redis.RedisError as exc:
            logger.warning("store.command_failed", op=op, error=str(exc))
            raise StoreUnavailableError(f"Redis {op} failed: {exc}", cause=exc) from exc

    def get(self, key: str) -> str | None:
        value = self._call("GET", self._client.get, key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        self._call("SET", self._client.set, key, value, ex=ttl_seconds)

    def set_if_absent(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> bool:
        return bool(self._call("SET NX", self._client.set, key, value, nx=True, ex=ttl_seconds))

    def exists(self, key: str) -> bool:
        return bool(self._call("EXISTS", self._client.exists, key))

    def delete(self, key: str) -> None:
        self._call("DEL", self._client.delete, key)

    def incr_by(self, key: str, amount: int) -> int:
        return int(self._call("INCRBY", self._client.incrby, key, amount))

    def decr_by(self, key: str, amount: int) -> int:
        return int(self._call("DECRBY", self._client.decrby, key, amount))

    def eval_script(self, script: AtomicScript, keys: Sequence[str], args: Sequence[Any]) -> int:
        with self._scripts_lock:
            registered = self._scripts.get(script.name)
            if registered is None:
                registered = self._client.register_script(script.source)
                self._scripts[script.name] = registered
        return int(self._call("EVALSHA", registered, keys=list(keys), args=list(args)))

    def close(self) -> None:
        self._client.close()


__all__ = [
    "AtomicScript",
    "KeyValueStore",
    "InMemoryStore",
    "RedisStore",
]
