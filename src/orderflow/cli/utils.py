"""
CLI utility helpers — console output and container access.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table

from orderflow.core.config import OrderflowContainer, get_container

console = Console()
err_console = Console(stderr=True)


def container() -> OrderflowContainer:
    """Container configured from the environment (``ORDERFLOW_*``)."""
    return get_container()


def render_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)
