"""Key-value persistence backends for products and events."""
from __future__ import annotations

import json
import logging
import re
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import DateTime, String, Text, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .config import Settings

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products"
EVENTS_KEY = "events"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[Any]:
        ...

    def save(self, key: str, value: Any) -> None:
        ...


def _check_key(key: str) -> str:
    if not _KEY_PATTERN.match(key):
        raise ValueError(f"Invalid storage key '{key}'")
    return key


class MemoryStore:
    """Dictionary backed store; values are copied on the way in and out."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def load(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return deepcopy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        self._data[_check_key(key)] = deepcopy(value)


class JsonFileStore:
    """One pretty-printed JSON document per key inside ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_check_key(key)}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8")
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable JSON in %s", path)
            return None

    def save(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(path)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class SqlKeyValueStore:
    """Stores each key as a JSON text row in a ``kv_entries`` table."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self.engine = create_engine(database_url, echo=echo)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def load(self, key: str) -> Optional[Any]:
        with self._session_factory() as session:
            entry = session.get(KeyValueEntry, _check_key(key))
            if entry is None:
                return None
            try:
                return json.loads(entry.value)
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable JSON stored under '%s'", key)
                return None

    def save(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._session_factory.begin() as session:
            entry = session.get(KeyValueEntry, _check_key(key))
            if entry is None:
                session.add(KeyValueEntry(key=key, value=payload))
            else:
                entry.value = payload

    def keys(self) -> list[str]:
        with Session(self.engine) as session:
            return list(session.scalars(select(KeyValueEntry.key).order_by(KeyValueEntry.key)))

    def dispose(self) -> None:
        self.engine.dispose()


def open_store(settings: Settings) -> KeyValueStore:
    """Build the backend selected by ``settings.storage_backend``."""

    if settings.storage_backend == "memory":
        return MemoryStore()
    if settings.storage_backend == "sql":
        return SqlKeyValueStore(settings.database_url)
    return JsonFileStore(settings.storage_dir)


__all__ = [
    "PRODUCTS_KEY",
    "EVENTS_KEY",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "SqlKeyValueStore",
    "KeyValueEntry",
    "open_store",
]
