"""Derived position -> product lookup for the storage grid."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, Optional

from .models import Position, Product

logger = logging.getLogger(__name__)


def _is_cell_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class GridIndex:
    """Read-only view of which product sits in which cell.

    The index is always rebuilt from a product list and never patched, so it
    cannot drift from the products it was built from.
    """

    def __init__(self, rows: int, cols: int) -> None:
        if rows <= 0 or cols <= 0:
            raise ValueError("Grid dimensions must be positive")
        self.rows = rows
        self.cols = cols
        self._cells: Dict[Position, Product] = {}

    def in_bounds(self, row: Any, col: Any) -> bool:
        return (
            _is_cell_index(row)
            and _is_cell_index(col)
            and 0 <= row < self.rows
            and 0 <= col < self.cols
        )

    def rebuild(self, products: Iterable[Product]) -> None:
        cells: Dict[Position, Product] = {}
        for product in products:
            if product.in_prelievo or product.position is None:
                continue
            row, col = product.position
            if not self.in_bounds(row, col):
                logger.warning(
                    "Skipping product %s with invalid cell (%r, %r)", product.id, row, col
                )
                continue
            key = Position(row, col)
            if key in cells:
                logger.warning(
                    "Cell (%d, %d) already holds %s, rejecting %s",
                    row,
                    col,
                    cells[key].id,
                    product.id,
                )
                continue
            cells[key] = product
        self._cells = cells

    def product_at(self, row: int, col: int) -> Optional[Product]:
        return self._cells.get(Position(row, col))

    def is_free(self, row: int, col: int) -> bool:
        return self.in_bounds(row, col) and (row, col) not in self._cells

    def occupied_count(self) -> int:
        return len(self._cells)

    def free_cells(self) -> Iterator[Position]:
        for row in range(self.rows):
            for col in range(self.cols):
                if (row, col) not in self._cells:
                    yield Position(row, col)

    def cells(self) -> Dict[Position, str]:
        return {position: product.id for position, product in self._cells.items()}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, position: object) -> bool:
        return position in self._cells


__all__ = ["GridIndex"]
