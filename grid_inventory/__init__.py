"""Grid inventory package."""
from __future__ import annotations

from .errors import (
    CellOccupied,
    ImportParseError,
    InvalidFormat,
    InvalidState,
    InventoryError,
    OutOfBounds,
    ProductNotFound,
)
from .inventory import Inventory
from .models import Position, Product

__all__ = [
    "create_app",
    "Inventory",
    "Position",
    "Product",
    "InventoryError",
    "ProductNotFound",
    "InvalidState",
    "OutOfBounds",
    "CellOccupied",
    "ImportParseError",
    "InvalidFormat",
]


def create_app(*args, **kwargs):
    from .app import create_app as _create_app

    return _create_app(*args, **kwargs)
