"""
Centralized settings for orderflow.

Manifesto:
    One validated, cached settings object feeds every factory in
    :mod:`orderflow.core.config.factory`.  Workers and the dispatching
    process read the same ``ORDERFLOW_*`` variables, so a chain enqueued by
    one is processed with the same policy by the other.

Tags:
    orderflow, configuration, settings, pydantic, caching

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .components import (
    ComponentWarning,
    EventBackend,
    QueueBackend,
    StoreBackend,
    validate_component_combination,
)


def _default_priorities() -> dict[str, int]:
    return {
        "critical": 6,
        "order_processing_chain": 6,
        "default": 3,
        "payments": 3,
        "inventory_check": 3,
        "low": 1,
    }


class OrderflowSettings(BaseSettings):
    """Orderflow configuration.

    All fields can be set via ``ORDERFLOW_*`` environment variables (e.g.
    ``ORDERFLOW_STORE_BACKEND=redis``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORDERFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Component backends ───────────────────────────────────────
    store_backend: StoreBackend = Field(default=StoreBackend.MEMORY)
    queue_backend: QueueBackend = Field(default=QueueBackend.MEMORY)
    event_backend: EventBackend = Field(default=EventBackend.MEMORY)

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///orderflow.db")
    database_echo: bool = Field(default=False)

    # ── Redis ────────────────────────────────────────────────────
    redis_url: str = Field(default="redis://localhost:6379/0")
    event_redis_url: str = Field(
        default="redis://localhost:6379/3",
        description="Redis URL for event bus (if event_backend=redis)",
    )
    event_channel_prefix: str = Field(default="orderflow:events")

    # ── Celery ───────────────────────────────────────────────────
    celery_broker_url: str = Field(default="redis://localhost:6379/1")
    celery_result_backend: str = Field(default="redis://localhost:6379/2")
    worker_concurrency: int = Field(default=10, ge=1)
    queue_priorities: dict[str, int] = Field(default_factory=_default_priorities)

    # ── Chain defaults ───────────────────────────────────────────
    chain_queue: str = Field(default="default")
    chain_max_retries: int = Field(default=3, ge=0)
    chain_timeout_seconds: float = Field(default=300.0, gt=0)
    chain_step_delay_seconds: float = Field(default=1.0, ge=0)

    # ── Retry backoff ────────────────────────────────────────────
    retry_base_delay_seconds: float = Field(default=15.0, ge=0)
    retry_max_delay_seconds: float = Field(default=600.0, ge=0)

    # ── Step ledger ──────────────────────────────────────────────
    step_ledger_enabled: bool = Field(default=True)
    step_ledger_ttl_seconds: int = Field(default=86400, ge=1)

    # ── Order chain ──────────────────────────────────────────────
    order_chain_queue: str = Field(default="order_processing_chain")
    order_chain_max_retries: int = Field(default=3, ge=0)
    order_chain_timeout_seconds: float = Field(default=180.0, gt=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json, console or auto")
    service_name: str = Field(default="orderflow")

    # ── Computed ─────────────────────────────────────────────────
    component_warnings: list[ComponentWarning] = Field(default_factory=list, exclude=True)

    @model_validator(mode="after")
    def _validate_components(self) -> OrderflowSettings:
        warnings = validate_component_combination(
            store=self.store_backend,
            queue=self.queue_backend,
            events=self.event_backend,
            database_url=self.database_url,
        )
        object.__setattr__(self, "component_warnings", warnings)
        return self

    # ── Derived properties ───────────────────────────────────────

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == "json":
            return True
        if self.log_format == "console":
            return False
        return None

    @property
    def worker_queues(self) -> list[str]:
        """Queues served by a worker, highest priority first."""
        return [
            name
            for name, _ in sorted(self.queue_priorities.items(), key=lambda kv: -kv[1])
        ]


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, OrderflowSettings] = {}


def get_settings(*, _force_reload: bool = False) -> OrderflowSettings:
    """Load, validate, and cache an :class:`OrderflowSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = OrderflowSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
