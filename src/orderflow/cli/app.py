"""
Root Typer application for the orderflow CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="orderflow",
    help="orderflow — saga-style order processing over a job queue.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from orderflow import __version__

        typer.echo(f"orderflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """orderflow CLI — run workers, reconcile inventory, manage the database."""


# ── Sub-command registration ─────────────────────────────────────────────

from orderflow.cli.db import app as db_app  # noqa: E402
from orderflow.cli.inventory import app as inventory_app  # noqa: E402
from orderflow.cli.worker import app as worker_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(worker_app, name="worker", help="Celery worker management.")
app.add_typer(inventory_app, name="inventory", help="Stock counter seeding and reconciliation.")


if __name__ == "__main__":
    app()
