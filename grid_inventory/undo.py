"""Bounded snapshot stack backing single-step undo."""
from __future__ import annotations

import logging
from collections import deque
from copy import deepcopy
from typing import Deque, Iterable, List, Optional

from .models import Product

logger = logging.getLogger(__name__)


class UndoStack:
    """Last-in first-out snapshots of the product list.

    Pushing past ``capacity`` silently drops the oldest snapshot. Popped
    snapshots are discarded; there is no redo.
    """

    def __init__(self, capacity: int = 20) -> None:
        if capacity <= 0:
            raise ValueError("Undo capacity must be greater than zero")
        self.capacity = capacity
        self._snapshots: Deque[List[Product]] = deque(maxlen=capacity)

    def push(self, products: Iterable[Product], *, copy: bool = True) -> None:
        """Store a snapshot; pass ``copy=False`` when handing over a private copy."""

        if len(self._snapshots) == self.capacity:
            logger.debug("Undo stack full (%d), evicting oldest snapshot", self.capacity)
        snapshot = list(products)
        self._snapshots.append(deepcopy(snapshot) if copy else snapshot)

    def pop(self) -> Optional[List[Product]]:
        if not self._snapshots:
            return None
        return self._snapshots.pop()

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    def __bool__(self) -> bool:
        return bool(self._snapshots)


__all__ = ["UndoStack"]
