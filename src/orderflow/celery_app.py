"""Celery entry point for orderflow workers.

Usage::

    celery -A orderflow.celery_app worker -Q order_processing_chain,default --loglevel=info

The app, its ``orderflow.execute`` task and the frozen handler registry
are built from :class:`~orderflow.core.config.OrderflowSettings` at import
time, so every worker process serves the same task types. Importing it
with any ``ORDERFLOW_QUEUE_BACKEND`` other than ``celery`` raises
:class:`~orderflow.core.errors.InvalidConfigError`.
"""

from __future__ import annotations

from orderflow.core.config import get_container
from orderflow.core.logging import configure_logging

_container = get_container()
_settings = _container.settings

configure_logging(
    level=_settings.log_level,
    json_format=_settings.json_logs,
    service=_settings.service_name,
)

app = _container.celery_app

__all__ = ["app"]
