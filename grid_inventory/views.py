"""Coalesced refresh requests for the views reading the inventory."""
from __future__ import annotations

import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], None]


class RefreshScheduler:
    """Collects refresh requests so each view redraws at most once per tick.

    Requests only mark a view as dirty; ``flush`` runs the callbacks. The
    inventory state itself is never deferred.
    """

    def __init__(self) -> None:
        self._callbacks: Dict[str, RefreshCallback] = {}
        self._pending: Dict[str, None] = {}

    def register(self, view: str, callback: RefreshCallback) -> None:
        self._callbacks[view] = callback

    def unregister(self, view: str) -> None:
        self._callbacks.pop(view, None)
        self._pending.pop(view, None)

    @property
    def views(self) -> List[str]:
        return list(self._callbacks)

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    def request(self, view: str) -> None:
        if view in self._callbacks:
            self._pending[view] = None

    def request_all(self) -> None:
        for view in self._callbacks:
            self._pending[view] = None

    def flush(self) -> int:
        """Run every pending refresh once; return how many ran."""

        pending, self._pending = list(self._pending), {}
        ran = 0
        for view in pending:
            callback = self._callbacks.get(view)
            if callback is None:
                continue
            callback()
            ran += 1
        if ran:
            logger.debug("Refreshed %d views: %s", ran, ", ".join(pending))
        return ran


__all__ = ["RefreshScheduler", "RefreshCallback"]
