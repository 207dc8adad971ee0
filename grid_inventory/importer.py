"""Normalization of untrusted JSON into product records."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .errors import ImportParseError, InvalidFormat
from .grid import GridIndex
from .models import (
    Position,
    Product,
    new_product_id,
    parse_timestamp,
    serialize_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

LIST_KEYS = ("products", "items")

_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id",),
    "name": ("name", "nome"),
    "lot": ("lot", "lotto"),
    "expiry_text": ("expiryText", "expiry", "scadenza", "expiry_text"),
    "date_added": ("dateAdded", "date_added"),
    "in_prelievo": ("inPrelievo", "in_prelievo", "picked"),
    "row": ("row",),
    "col": ("col",),
    "prev_row": ("_prevRow", "prevRow"),
    "prev_col": ("_prevCol", "prevCol"),
}

# Misconfigured fetches hand back an error page instead of the export.
_HTML_MARKER = "<"
_TRUE_STRINGS = {"true", "1", "yes", "si", "sì"}
_FALSE_STRINGS = {"false", "0", "no", ""}


@dataclass
class ImportResult:
    """Normalized products plus a record of what had to be degraded."""

    products: List[Product] = field(default_factory=list)
    dropped: int = 0
    reassigned_ids: int = 0
    unplaced: int = 0


def decode_import(data: Any) -> Any:
    """Turn raw upload bytes or text into parsed JSON."""

    if isinstance(data, (bytes, bytearray)):
        try:
            text = bytes(data).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ImportParseError("File must be UTF-8 encoded") from exc
    elif isinstance(data, str):
        text = data[1:] if data.startswith("\ufeff") else data
    else:
        raise ImportParseError("Unsupported import payload")
    head = text.lstrip()[:1]
    if not head:
        raise ImportParseError("Empty file")
    if head == _HTML_MARKER:
        raise InvalidFormat("Received an HTML page instead of JSON", code="html")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportParseError(f"Invalid JSON: {exc.msg}") from exc
    except RecursionError as exc:
        raise ImportParseError("JSON is nested too deeply") from exc


def extract_entries(raw: Any) -> List[Any]:
    """Classify the top-level shape and return the candidate entry list."""

    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in LIST_KEYS:
            candidate = raw.get(key)
            if isinstance(candidate, list):
                return candidate
        raise InvalidFormat(
            "JSON object has no product list under "
            + " or ".join(f"'{key}'" for key in LIST_KEYS)
        )
    raise InvalidFormat("JSON must be a list of products or an object containing one")


def _lookup(entry: Dict[str, Any], canonical: str) -> Any:
    for alias in _FIELD_ALIASES[canonical]:
        if alias in entry:
            return entry[alias]
    return None


def _coerce_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return ""
    return str(value).strip()


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return False


def _coerce_index(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        candidate = value.strip()
        if candidate.isdigit() and candidate.isascii():
            return int(candidate)
    return None


def _coerce_position(grid: GridIndex, row_raw: Any, col_raw: Any) -> Optional[Position]:
    row = _coerce_index(row_raw)
    col = _coerce_index(col_raw)
    if row is None or col is None or not grid.in_bounds(row, col):
        return None
    return Position(row, col)


def _coerce_id(value: Any, taken: Set[str]) -> Tuple[str, bool]:
    candidate = ""
    if isinstance(value, str):
        candidate = value.strip()
    elif isinstance(value, int) and not isinstance(value, bool):
        candidate = str(value)
    if candidate and candidate not in taken:
        return candidate, False
    fresh = new_product_id()
    while fresh in taken:
        fresh = new_product_id()
    return fresh, bool(candidate)


def normalize_products(
    raw: Any,
    *,
    grid: GridIndex,
    reserved_ids: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> ImportResult:
    """Coerce an arbitrary JSON value into valid, collision free products.

    ``grid`` supplies the bounds; positions are claimed first come first
    served in input order and losers end up on the shelf. Entries without any
    of name/lot/expiry text are dropped rather than failing the batch.
    """

    entries = extract_entries(raw)
    timestamp = serialize_timestamp(now or utc_now()) or ""
    result = ImportResult()
    taken: Set[str] = set(reserved_ids)
    claimed: Set[Position] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            result.dropped += 1
            continue
        name = _coerce_text(_lookup(entry, "name"))
        lot = _coerce_text(_lookup(entry, "lot"))
        expiry_text = _coerce_text(_lookup(entry, "expiry_text"))
        if not (name or lot or expiry_text):
            result.dropped += 1
            continue
        product_id, reassigned = _coerce_id(_lookup(entry, "id"), taken)
        taken.add(product_id)
        if reassigned:
            result.reassigned_ids += 1
        date_raw = _lookup(entry, "date_added")
        if isinstance(date_raw, str) and parse_timestamp(date_raw) is not None:
            date_added = date_raw.strip()
        else:
            date_added = timestamp
        in_prelievo = _coerce_flag(_lookup(entry, "in_prelievo"))
        row_raw = _lookup(entry, "row")
        col_raw = _lookup(entry, "col")
        had_position = row_raw is not None or col_raw is not None
        position: Optional[Position] = None
        backup: Optional[Position] = None
        if in_prelievo:
            backup = _coerce_position(
                grid, _lookup(entry, "prev_row"), _lookup(entry, "prev_col")
            )
            if backup is None:
                backup = _coerce_position(grid, row_raw, col_raw)
        else:
            position = _coerce_position(grid, row_raw, col_raw)
            if position is not None and position in claimed:
                position = None
            if position is not None:
                claimed.add(position)
            elif had_position:
                result.unplaced += 1
        result.products.append(
            Product(
                id=product_id,
                name=name,
                lot=lot,
                expiry_text=expiry_text,
                date_added=date_added,
                in_prelievo=in_prelievo,
                position=position,
                backup=backup,
            )
        )
    if not entries:
        raise InvalidFormat("Product list is empty", code="empty")
    if not result.products:
        raise InvalidFormat("No usable products in import", code="empty")
    if result.dropped or result.reassigned_ids or result.unplaced:
        logger.info(
            "Normalized %d products (dropped %d, new ids %d, moved to shelf %d)",
            len(result.products),
            result.dropped,
            result.reassigned_ids,
            result.unplaced,
        )
    return result


__all__ = [
    "LIST_KEYS",
    "ImportResult",
    "decode_import",
    "extract_entries",
    "normalize_products",
]
