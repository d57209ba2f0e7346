"""Stock reservation against the shared counter store."""

from orderflow.inventory.reservation import (
    RESERVE_SCRIPT,
    InventoryReservationEngine,
    LineItem,
    Reservation,
    inventory_key,
)

__all__ = [
    "RESERVE_SCRIPT",
    "InventoryReservationEngine",
    "LineItem",
    "Reservation",
    "inventory_key",
]
