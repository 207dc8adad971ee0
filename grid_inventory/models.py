"""Product records held by the inventory engine."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def serialize_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def new_product_id() -> str:
    return uuid.uuid4().hex


class Position(NamedTuple):
    row: int
    col: int


@dataclass
class Product:
    """A single product, either on the shelf or placed in a grid cell."""

    id: str
    name: str = ""
    lot: str = ""
    expiry_text: str = ""
    date_added: str = ""
    in_prelievo: bool = False
    position: Optional[Position] = None
    backup: Optional[Position] = None

    @property
    def placed(self) -> bool:
        return self.position is not None

    @property
    def added_at(self) -> Optional[datetime]:
        return parse_timestamp(self.date_added)

    def has_identity_fields(self) -> bool:
        return bool(self.name or self.lot or self.expiry_text)

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "lot": self.lot,
            "expiryText": self.expiry_text,
            "dateAdded": self.date_added,
            "inPrelievo": self.in_prelievo,
            "row": None if self.position is None else self.position.row,
            "col": None if self.position is None else self.position.col,
        }
        if self.backup is not None:
            record["_prevRow"] = self.backup.row
            record["_prevCol"] = self.backup.col
        return record


__all__ = [
    "Position",
    "Product",
    "new_product_id",
    "parse_timestamp",
    "serialize_timestamp",
    "utc_now",
]
