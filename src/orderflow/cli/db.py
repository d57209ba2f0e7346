"""
CLI: ``orderflow db`` — database management commands.
"""

from __future__ import annotations

import typer

from orderflow.cli.utils import console, container

app = typer.Typer(no_args_is_help=True)


@app.command()
def init() -> None:
    """Initialise database schema (create tables)."""
    from orderflow.core.orm import create_all

    c = container()
    create_all(c.engine)
    console.print(f"[green]Schema created[/green] ({c.engine.url.render_as_string(hide_password=True)})")
