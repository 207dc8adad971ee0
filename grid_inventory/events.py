"""Append-only audit trail of inventory mutations and its statistics."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .models import Product, parse_timestamp, serialize_timestamp, utc_now

logger = logging.getLogger(__name__)

ACTIONS = ("add", "edit", "delete", "move", "pick", "return")

_SNAPSHOT_FIELDS = ("id", "name", "lot", "expiryText", "dateAdded", "row", "col")


@dataclass
class InventoryEvent:
    """Represents a single inventory mutation event."""

    timestamp: datetime
    action: str
    product: Dict[str, Any] = field(default_factory=dict)

    @property
    def product_id(self) -> str:
        return str(self.product.get("id") or "")

    @property
    def name(self) -> str:
        return str(self.product.get("name") or "")

    def to_record(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "product": dict(self.product),
            "timestamp": serialize_timestamp(self.timestamp),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "InventoryEvent":
        timestamp = parse_timestamp(record.get("timestamp"))
        if timestamp is None:
            raise ValueError("Invalid timestamp in event record")
        action = str(record.get("action") or "").strip()
        if action not in ACTIONS:
            raise ValueError(f"Unknown event action '{action}'")
        product = record.get("product")
        if not isinstance(product, dict):
            product = {}
        return cls(timestamp=timestamp, action=action, product=product)


def _product_fields(product: Product) -> Dict[str, Any]:
    record = product.to_dict()
    return {key: record.get(key) for key in _SNAPSHOT_FIELDS}


class EventLog:
    """Unbounded, in-order list of events; fine for a single shop's volume."""

    def __init__(self, events: Optional[Iterable[InventoryEvent]] = None) -> None:
        self._events: List[InventoryEvent] = list(events or [])

    def append(
        self,
        action: str,
        product: Product,
        *,
        timestamp: Optional[datetime] = None,
    ) -> InventoryEvent:
        if action not in ACTIONS:
            raise ValueError(f"Unknown event action '{action}'")
        event = InventoryEvent(
            timestamp=timestamp or utc_now(),
            action=action,
            product=_product_fields(product),
        )
        self._events.append(event)
        return event

    @property
    def events(self) -> Tuple[InventoryEvent, ...]:
        return tuple(self._events)

    def clear(self) -> None:
        self._events.clear()

    def to_records(self) -> List[Dict[str, Any]]:
        return [event.to_record() for event in self._events]

    @classmethod
    def from_records(cls, records: Any) -> "EventLog":
        events: List[InventoryEvent] = []
        if not isinstance(records, list):
            return cls()
        skipped = 0
        for record in records:
            if not isinstance(record, dict):
                skipped += 1
                continue
            try:
                events.append(InventoryEvent.from_record(record))
            except ValueError:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d malformed event records", skipped)
        return cls(events)

    def __len__(self) -> int:
        return len(self._events)


def _top_names(counter: Counter, limit: int) -> List[Dict[str, Any]]:
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [{"name": name, "count": count} for name, count in ordered[:limit]]


def average_dwell(events: Iterable[InventoryEvent]) -> Optional[timedelta]:
    """Mean time between ``dateAdded`` and deletion for added-then-deleted products."""

    ordered = sorted(events, key=lambda event: event.timestamp)
    added: Set[str] = set()
    durations: List[timedelta] = []
    for event in ordered:
        product_id = event.product_id
        if not product_id:
            continue
        if event.action == "add":
            added.add(product_id)
        elif event.action == "delete" and product_id in added:
            added_at = parse_timestamp(event.product.get("dateAdded"))
            if added_at is None:
                continue
            durations.append(event.timestamp - added_at)
            added.discard(product_id)
    if not durations:
        return None
    return sum(durations, timedelta()) / len(durations)


def event_statistics(
    events: Iterable[InventoryEvent],
    *,
    top: int = 5,
) -> Dict[str, Any]:
    entries = list(events)
    counts = {action: 0 for action in ACTIONS}
    added: Counter = Counter()
    removed: Counter = Counter()
    for entry in entries:
        counts[entry.action] = counts.get(entry.action, 0) + 1
        label = entry.name.strip() or "(senza nome)"
        if entry.action == "add":
            added[label] += 1
        elif entry.action == "delete":
            removed[label] += 1
    dwell = average_dwell(entries)
    return {
        "total": len(entries),
        "counts": counts,
        "top_added": _top_names(added, top),
        "top_removed": _top_names(removed, top),
        "average_dwell_seconds": None if dwell is None else dwell.total_seconds(),
    }


__all__ = [
    "ACTIONS",
    "InventoryEvent",
    "EventLog",
    "average_dwell",
    "event_statistics",
]
