from datetime import datetime, timedelta, timezone

import pytest

from grid_inventory.events import EventLog, InventoryEvent, average_dwell, event_statistics
from grid_inventory.models import Product

START = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


def _product(product_id: str, name: str, added: datetime = START) -> Product:
    return Product(id=product_id, name=name, date_added=added.isoformat())


def test_append_keeps_a_detached_snapshot() -> None:
    log = EventLog()
    product = _product("a", "Latte")
    event = log.append("add", product, timestamp=START)
    product.name = "Yogurt"

    assert event.product["name"] == "Latte"
    assert event.product_id == "a"
    assert event.product["row"] is None
    assert len(log) == 1


def test_append_rejects_unknown_action() -> None:
    with pytest.raises(ValueError):
        EventLog().append("teleport", _product("a", "Latte"))


def test_records_survive_a_save_cycle() -> None:
    log = EventLog()
    log.append("add", _product("a", "Latte"), timestamp=START)
    log.append("pick", _product("a", "Latte"), timestamp=START + timedelta(hours=1))

    restored = EventLog.from_records(log.to_records())

    assert [event.action for event in restored.events] == ["add", "pick"]
    assert restored.events[1].timestamp == START + timedelta(hours=1)


def test_from_records_skips_malformed_entries() -> None:
    records = [
        {"action": "add", "product": {"id": "a"}, "timestamp": "2025-01-01T08:00:00Z"},
        {"action": "explode", "product": {}, "timestamp": "2025-01-01T08:00:00Z"},
        {"action": "add", "product": {}, "timestamp": "yesterday"},
        "not a record",
        {"action": "delete", "product": None, "timestamp": "2025-01-02T08:00:00"},
    ]
    log = EventLog.from_records(records)

    assert [event.action for event in log.events] == ["add", "delete"]
    assert log.events[1].product == {}
    assert log.events[1].timestamp.tzinfo is not None
    assert len(EventLog.from_records({"events": []})) == 0
    assert len(EventLog.from_records(None)) == 0


def test_average_dwell_pairs_adds_with_deletes() -> None:
    events = [
        InventoryEvent(START, "add", {"id": "a", "dateAdded": START.isoformat()}),
        InventoryEvent(START, "add", {"id": "b", "dateAdded": START.isoformat()}),
        InventoryEvent(
            START + timedelta(hours=4), "delete", {"id": "b", "dateAdded": START.isoformat()}
        ),
        InventoryEvent(
            START + timedelta(hours=2), "delete", {"id": "a", "dateAdded": START.isoformat()}
        ),
        # deleted without a recorded add: ignored
        InventoryEvent(
            START + timedelta(hours=9), "delete", {"id": "c", "dateAdded": START.isoformat()}
        ),
    ]

    assert average_dwell(events) == timedelta(hours=3)


def test_average_dwell_without_pairs_is_none() -> None:
    events = [InventoryEvent(START, "add", {"id": "a", "dateAdded": START.isoformat()})]
    assert average_dwell(events) is None
    assert average_dwell([]) is None


def test_event_statistics_counts_and_rankings() -> None:
    log = EventLog()
    for index, name in enumerate(["Latte", "Latte", "Burro", "", "Panna"]):
        log.append("add", _product(f"p{index}", name), timestamp=START)
    log.append(
        "delete", _product("p0", "Latte"), timestamp=START + timedelta(days=2)
    )
    log.append("move", _product("p2", "Burro"), timestamp=START)

    stats = event_statistics(log.events, top=3)

    assert stats["total"] == 7
    assert stats["counts"]["add"] == 5
    assert stats["counts"]["delete"] == 1
    assert stats["counts"]["return"] == 0
    assert stats["top_added"] == [
        {"name": "Latte", "count": 2},
        {"name": "(senza nome)", "count": 1},
        {"name": "Burro", "count": 1},
    ]
    assert stats["top_removed"] == [{"name": "Latte", "count": 1}]
    assert stats["average_dwell_seconds"] == timedelta(days=2).total_seconds()
