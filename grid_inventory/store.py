"""Product collection and its lifecycle operations."""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Iterable, List, Optional, Set, Tuple

from .errors import CellOccupied, InvalidState, OutOfBounds, ProductNotFound
from .grid import GridIndex
from .models import Position, Product, new_product_id, serialize_timestamp, utc_now

logger = logging.getLogger(__name__)


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class ProductStore:
    """Owns the ordered product list (most recent first) and its grid index.

    Every mutating method finishes by rebuilding the grid index. Snapshots,
    events and persistence are the caller's concern.
    """

    def __init__(self, rows: int, cols: int) -> None:
        self._products: List[Product] = []
        self.grid = GridIndex(rows, cols)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @property
    def products(self) -> Tuple[Product, ...]:
        return tuple(self._products)

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self):
        return iter(tuple(self._products))

    def get(self, product_id: str) -> Product:
        for product in self._products:
            if product.id == product_id:
                return product
        raise ProductNotFound(product_id)

    def ids(self) -> Set[str]:
        return {product.id for product in self._products}

    def snapshot(self) -> List[Product]:
        return deepcopy(self._products)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add(
        self,
        *,
        name: Any = "",
        lot: Any = "",
        expiry_text: Any = "",
        position: Optional[Tuple[int, int]] = None,
    ) -> Optional[Product]:
        product = Product(
            id=new_product_id(),
            name=_clean_text(name),
            lot=_clean_text(lot),
            expiry_text=_clean_text(expiry_text),
            date_added=serialize_timestamp(utc_now()) or "",
        )
        if not product.has_identity_fields():
            return None
        if position is not None:
            row, col = position
            self._check_cell(row, col, product_id=product.id)
            product.position = Position(row, col)
        self._products.insert(0, product)
        self._rebuild()
        return product

    def edit(
        self,
        product_id: str,
        *,
        name: Any = None,
        lot: Any = None,
        expiry_text: Any = None,
    ) -> Product:
        product = self.get(product_id)
        if product.in_prelievo:
            raise InvalidState(f"Product '{product_id}' is picked and cannot be edited")
        updated = (
            product.name if name is None else _clean_text(name),
            product.lot if lot is None else _clean_text(lot),
            product.expiry_text if expiry_text is None else _clean_text(expiry_text),
        )
        if not any(updated):
            raise InvalidState(
                f"Product '{product_id}' needs a name, lot or expiry date"
            )
        product.name, product.lot, product.expiry_text = updated
        self._rebuild()
        return product

    def remove(self, product_id: str) -> Product:
        product = self.get(product_id)
        self._products.remove(product)
        self._rebuild()
        return product

    def set_position(self, product_id: str, row: int, col: int) -> Product:
        product = self.get(product_id)
        if product.in_prelievo:
            raise InvalidState(f"Product '{product_id}' is picked and cannot be moved")
        self._check_cell(row, col, product_id=product.id)
        product.position = Position(row, col)
        self._rebuild()
        return product

    def clear_position(self, product_id: str) -> Product:
        product = self.get(product_id)
        if product.in_prelievo:
            raise InvalidState(f"Product '{product_id}' is picked and cannot be moved")
        product.position = None
        self._rebuild()
        return product

    def pick(self, product_id: str) -> Product:
        product = self.get(product_id)
        if product.in_prelievo:
            raise InvalidState(f"Product '{product_id}' is already picked")
        product.backup = product.position
        product.position = None
        product.in_prelievo = True
        self._rebuild()
        return product

    def return_product(self, product_id: str) -> Tuple[Product, Optional[Position]]:
        """Bring a picked product back to the cell it was picked from.

        The cell is only restored when it is still free. Otherwise the product
        stays on the shelf and the blocked cell is returned as the second
        element so the caller can report it.
        """

        product = self.get(product_id)
        if not product.in_prelievo:
            raise InvalidState(f"Product '{product_id}' is not picked")
        backup = product.backup
        product.in_prelievo = False
        product.backup = None
        blocked: Optional[Position] = None
        if backup is not None:
            if self.grid.is_free(backup.row, backup.col):
                product.position = backup
            else:
                blocked = backup
        self._rebuild()
        return product, blocked

    def replace_all(self, products: Iterable[Product]) -> None:
        self._products = list(products)
        self._rebuild()
        logger.debug(
            "Store replaced: %d products, %d placed",
            len(self._products),
            self.grid.occupied_count(),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _check_cell(self, row: Any, col: Any, *, product_id: str) -> None:
        if not self.grid.in_bounds(row, col):
            raise OutOfBounds(row, col, self.grid.rows, self.grid.cols)
        occupant = self.grid.product_at(row, col)
        if occupant is not None and occupant.id != product_id:
            raise CellOccupied((row, col), occupant.id, product_id=product_id)

    def _rebuild(self) -> None:
        self.grid.rebuild(self._products)


__all__ = ["ProductStore"]
