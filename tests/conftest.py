from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from grid_inventory.app import create_app
from grid_inventory.config import Settings
from grid_inventory.inventory import Inventory
from grid_inventory.storage import MemoryStore


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "environment": "test",
        "storage_backend": "memory",
        "grid_rows": 4,
        "grid_cols": 5,
        "undo_capacity": 5,
        "events_flush_every": 3,
        "export_prefix": "inventario",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def storage() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def inventory(settings: Settings, storage: MemoryStore) -> Inventory:
    return Inventory(storage, settings=settings)


@pytest.fixture()
def app(settings: Settings, storage: MemoryStore) -> Iterator[Flask]:
    app = create_app(settings, storage=storage)
    app.config.update(TESTING=True)
    yield app


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    return app.test_client()
