"""
CLI: ``orderflow worker`` — start a Celery worker, inspect registered handlers.
"""

from __future__ import annotations

import typer

from orderflow.cli.utils import console, container, render_table
from orderflow.core.errors import InvalidConfigError

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    queues: str | None = typer.Option(  # noqa: UP007
        None, "--queues", "-Q", help="Comma-separated queues (default: all configured, by priority)"
    ),
    concurrency: int | None = typer.Option(  # noqa: UP007
        None, "--concurrency", "-c", help="Worker processes (default: ORDERFLOW_WORKER_CONCURRENCY)"
    ),
    loglevel: str | None = typer.Option(None, "--loglevel", "-l", help="Celery log level"),  # noqa: UP007
) -> None:
    """Start a Celery worker serving the orderflow task types.

    Example::

        orderflow worker start
        orderflow worker start -Q order_processing_chain,default -c 4
    """
    c = container()
    settings = c.settings
    queue_list = queues or ",".join(settings.worker_queues)
    workers = concurrency or settings.worker_concurrency
    level = loglevel or settings.log_level
    try:
        celery_app = c.celery_app
    except InvalidConfigError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[bold green]Starting orderflow worker[/bold green] "
        f"(queues={queue_list}, concurrency={workers})"
    )
    try:
        celery_app.worker_main(
            ["worker", "-Q", queue_list, "--concurrency", str(workers), "--loglevel", level]
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Worker stopped by user[/yellow]")
    except Exception as exc:
        console.print(f"[red]Worker error: {exc}[/red]")
        raise typer.Exit(code=1)


@app.command("handlers")
def handlers() -> None:
    """List the task types this worker would serve."""
    registry = container().registry
    rows = [[d["task_type"], d["handler"], d["description"]] for d in registry.describe()]
    if not rows:
        console.print("[yellow]No handlers registered[/yellow]")
        return
    render_table("Registered handlers", ["Task type", "Handler", "Description"], rows)
