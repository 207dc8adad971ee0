"""Exception types raised by the inventory engine."""
from __future__ import annotations

from typing import Optional, Tuple


class InventoryError(Exception):
    """Base class for inventory failures callers are expected to handle."""

    code = "inventory_error"


class ProductNotFound(InventoryError, KeyError):
    code = "not_found"

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product '{product_id}' not found")
        self.product_id = product_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class InvalidState(InventoryError, ValueError):
    code = "invalid_state"


class OutOfBounds(InventoryError, ValueError):
    code = "out_of_bounds"

    def __init__(self, row: object, col: object, rows: int, cols: int) -> None:
        super().__init__(
            f"Cell ({row}, {col}) is outside the {rows}x{cols} grid"
        )
        self.row = row
        self.col = col


class CellOccupied(InventoryError, ValueError):
    code = "cell_occupied"

    def __init__(
        self,
        position: Tuple[int, int],
        occupant_id: Optional[str] = None,
        *,
        product_id: Optional[str] = None,
    ) -> None:
        row, col = position
        super().__init__(f"Cell ({row}, {col}) is already occupied")
        self.position = (row, col)
        self.occupant_id = occupant_id
        self.product_id = product_id


class ImportParseError(InventoryError, ValueError):
    """The import payload is not decodable JSON."""

    code = "parse_error"


class InvalidFormat(InventoryError, ValueError):
    """The import payload is JSON but carries no usable product list."""

    def __init__(self, message: str, *, code: str = "invalid_format") -> None:
        super().__init__(message)
        self.code = code


__all__ = [
    "InventoryError",
    "ProductNotFound",
    "InvalidState",
    "OutOfBounds",
    "CellOccupied",
    "ImportParseError",
    "InvalidFormat",
]
