"""Inventory state engine: products, grid, undo history and event log."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import Settings, get_settings
from .errors import CellOccupied, InvalidFormat, OutOfBounds
from .events import EventLog, InventoryEvent, event_statistics
from .expiry import ExpiryStatus, ExpiryThresholds, ExpiryTier, classify_expiry
from .grid import GridIndex
from .importer import ImportResult, decode_import, normalize_products
from .models import Product
from .storage import EVENTS_KEY, PRODUCTS_KEY, KeyValueStore
from .store import ProductStore
from .undo import UndoStack
from .views import RefreshScheduler

logger = logging.getLogger(__name__)


@dataclass
class Inventory:
    """Orchestrates every mutation of the product collection.

    Each mutating call captures an undo snapshot, mutates the store (which
    rebuilds its grid index), appends to the event log, persists and asks the
    scheduler, when one is attached, to refresh every view. A call that fails
    validation changes nothing, the undo history included.

    Mutations hold an internal re-entrant lock for their whole duration.
    """

    storage: KeyValueStore
    settings: Settings = field(default_factory=get_settings)
    scheduler: Optional[RefreshScheduler] = None
    store: ProductStore = field(init=False)
    _undo: UndoStack = field(init=False)
    _events: EventLog = field(init=False)
    _unsaved_events: int = field(default=0, init=False)
    _lock: RLock = field(default_factory=RLock, init=False)

    def __post_init__(self) -> None:
        self.store = ProductStore(self.settings.grid_rows, self.settings.grid_cols)
        self._undo = UndoStack(self.settings.undo_capacity)
        self._events = EventLog.from_records(self.storage.load(EVENTS_KEY))
        raw_products = self.storage.load(PRODUCTS_KEY)
        if raw_products:
            try:
                loaded = normalize_products(raw_products, grid=self.store.grid)
            except InvalidFormat as exc:
                logger.warning("Ignoring persisted products: %s", exc)
            else:
                self.store.replace_all(loaded.products)
        logger.info(
            "Inventory loaded: %d products, %d events", len(self.store), len(self._events)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @property
    def products(self) -> Tuple[Product, ...]:
        return self.store.products

    @property
    def grid(self) -> GridIndex:
        return self.store.grid

    @property
    def events(self) -> Tuple[InventoryEvent, ...]:
        return self._events.events

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def thresholds(self) -> ExpiryThresholds:
        return ExpiryThresholds(
            red_days=self.settings.expiry_red_days,
            yellow_days=self.settings.expiry_yellow_days,
        )

    def get(self, product_id: str) -> Product:
        return self.store.get(product_id)

    def product_at(self, row: int, col: int) -> Optional[Product]:
        return self.store.grid.product_at(row, col)

    def expiry_status(self, product: Product, *, today: Optional[date] = None) -> ExpiryStatus:
        return classify_expiry(product.expiry_text, today=today, thresholds=self.thresholds)

    def search(
        self,
        query: str = "",
        *,
        status: Union[ExpiryTier, str, None] = None,
        placed: Optional[bool] = None,
        today: Optional[date] = None,
    ) -> List[Product]:
        """Filter products, keeping collection order.

        Every whitespace separated term must appear (case-insensitively) in
        the name, lot or expiry text.
        """

        terms = [term.casefold() for term in (query or "").split()]
        tier = None if status in (None, "") else ExpiryTier(status)
        matches: List[Product] = []
        for product in self.store.products:
            if placed is not None and product.placed != placed:
                continue
            if terms:
                haystack = " ".join(
                    (product.name, product.lot, product.expiry_text)
                ).casefold()
                if not all(term in haystack for term in terms):
                    continue
            if tier is not None and self.expiry_status(product, today=today).tier != tier:
                continue
            matches.append(product)
        return matches

    def expiry_groups(self, *, today: Optional[date] = None) -> Dict[str, List[Product]]:
        groups: Dict[str, List[Product]] = {
            tier.value: [] for tier in ExpiryTier if tier is not ExpiryTier.NONE
        }
        for product in self.store.products:
            status = self.expiry_status(product, today=today)
            if status.tier is ExpiryTier.NONE:
                continue
            groups[status.tier.value].append(product)
        for tier_products in groups.values():
            tier_products.sort(key=lambda product: self.expiry_status(product, today=today).expiry)
        return groups

    def statistics(self, *, top: int = 5) -> Dict[str, Any]:
        stats = event_statistics(self._events.events, top=top)
        products = self.store.products
        stats.update(
            {
                "products": len(products),
                "placed": self.store.grid.occupied_count(),
                "picked": sum(1 for product in products if product.in_prelievo),
                "shelf": sum(
                    1 for product in products if not product.placed and not product.in_prelievo
                ),
                "cells": self.settings.grid_rows * self.settings.grid_cols,
            }
        )
        return stats

    def grid_snapshot(self) -> Dict[str, Any]:
        grid = self.store.grid
        cells = [
            {"row": position.row, "col": position.col, "product_id": product_id}
            for position, product_id in sorted(grid.cells().items())
        ]
        return {
            "rows": grid.rows,
            "cols": grid.cols,
            "occupied": grid.occupied_count(),
            "cells": cells,
        }

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
        with self._lock:
            before = self.store.snapshot()
            product = self.store.add(
                name=name, lot=lot, expiry_text=expiry_text, position=position
            )
            if product is None:
                return None
            self._record(before, "add", product)
            return product

    def edit(
        self,
        product_id: str,
        *,
        name: Any = None,
        lot: Any = None,
        expiry_text: Any = None,
    ) -> Product:
        with self._lock:
            before = self.store.snapshot()
            product = self.store.edit(
                product_id, name=name, lot=lot, expiry_text=expiry_text
            )
            self._record(before, "edit", product)
            return product

    def delete(self, product_id: str) -> Product:
        with self._lock:
            before = self.store.snapshot()
            product = self.store.remove(product_id)
            self._record(before, "delete", product)
            return product

    def move(self, product_id: str, row: Optional[int], col: Optional[int]) -> Product:
        """Place a product in a cell, or back on the shelf when both are ``None``."""

        with self._lock:
            before = self.store.snapshot()
            if row is None and col is None:
                product = self.store.clear_position(product_id)
            else:
                product = self.store.set_position(product_id, row, col)
            self._record(before, "move", product)
            return product

    def pick(self, product_id: str) -> Product:
        with self._lock:
            before = self.store.snapshot()
            product = self.store.pick(product_id)
            self._record(before, "pick", product)
            return product

    def return_product(self, product_id: str) -> Product:
        with self._lock:
            before = self.store.snapshot()
            product, blocked = self.store.return_product(product_id)
            self._record(before, "return", product)
            if blocked is not None:
                occupant = self.store.grid.product_at(blocked.row, blocked.col)
                raise CellOccupied(
                    blocked,
                    None if occupant is None else occupant.id,
                    product_id=product.id,
                )
            return product

    def save_cell(
        self,
        row: int,
        col: int,
        *,
        name: Any = "",
        lot: Any = "",
        expiry_text: Any = "",
    ) -> Optional[Product]:
        """Edit the product in a cell, or create one there if the cell is empty."""

        with self._lock:
            grid = self.store.grid
            if not grid.in_bounds(row, col):
                raise OutOfBounds(row, col, grid.rows, grid.cols)
            if not any(str(value or "").strip() for value in (name, lot, expiry_text)):
                return None
            occupant = grid.product_at(row, col)
            if occupant is None:
                return self.add(
                    name=name, lot=lot, expiry_text=expiry_text, position=(row, col)
                )
            return self.edit(occupant.id, name=name, lot=lot, expiry_text=expiry_text)

    def undo(self) -> bool:
        with self._lock:
            snapshot = self._undo.pop()
            if snapshot is None:
                return False
            self.store.replace_all(snapshot)
            self._save_products()
            self._request_refresh()
            logger.info("Undo applied, %d snapshots left", len(self._undo))
            return True

    def import_records(self, raw: Any) -> ImportResult:
        """Replace the whole collection with normalized ``raw`` JSON data."""

        with self._lock:
            result = normalize_products(
                raw, grid=self.store.grid, reserved_ids=self.store.ids()
            )
            self._undo.push(self.store.snapshot(), copy=False)
            self.store.replace_all(result.products)
            self._save_products()
            self._save_events()
            self._request_refresh()
        logger.info(
            "Imported %d products (%d dropped)", len(result.products), result.dropped
        )
        return result

    def import_json(self, data: Union[bytes, str]) -> ImportResult:
        return self.import_records(decode_import(data))

    def export_records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [product.to_dict() for product in self.store.products]

    def export_json(self) -> str:
        return json.dumps(self.export_records(), indent=2, ensure_ascii=False)

    def export_filename(self, *, today: Optional[date] = None) -> str:
        stamp = (today or date.today()).isoformat()
        return f"{self.settings.export_prefix}_{stamp}.json"

    def flush(self) -> None:
        with self._lock:
            self._save_products()
            self._save_events()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _record(self, before: List[Product], action: str, product: Product) -> None:
        self._undo.push(before, copy=False)
        self._events.append(action, product)
        self._unsaved_events += 1
        self._save_products()
        if self._unsaved_events >= self.settings.events_flush_every:
            self._save_events()
        self._request_refresh()
        logger.info("Recorded %s of product %s", action, product.id)

    def _save_products(self) -> None:
        self.storage.save(PRODUCTS_KEY, self.export_records())

    def _save_events(self) -> None:
        self.storage.save(EVENTS_KEY, self._events.to_records())
        self._unsaved_events = 0

    def _request_refresh(self) -> None:
        if self.scheduler is not None:
            self.scheduler.request_all()


__all__ = ["Inventory"]
