"""
CLI: ``orderflow inventory`` — seed stock counters, write them back to the database.
"""

from __future__ import annotations

import typer

from orderflow.cli.utils import console, container

app = typer.Typer(no_args_is_help=True)


@app.command("seed")
def seed() -> None:
    """Seed every missing stock counter from its database quantity."""
    written = container().reservations.seed_all()
    console.print(f"[green]Seeded {written} counter(s)[/green]")


@app.command("sync")
def sync(
    inventory_id: int | None = typer.Option(  # noqa: UP007
        None, "--inventory-id", "-i", help="Sync a single inventory row"
    ),
) -> None:
    """Write cached stock counters back to the database (last write wins)."""
    engine = container().reservations
    if inventory_id is None:
        synced = engine.sync_all()
        console.print(f"[green]Synced {synced} inventory row(s)[/green]")
        return

    quantity = engine.sync_to_db(inventory_id)
    if quantity is None:
        console.print(f"[yellow]Inventory {inventory_id} not synced (no row or no cached counter)[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]Inventory {inventory_id} synced: quantity={quantity}[/green]")
