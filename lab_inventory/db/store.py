"""Durable key/value storage for the inventory state.

Every piece of state lives under one logical key (``devices``, ``archived``,
``notes``, ``changeLogs``, ``admin_password``, ``theme``) and is stored as
JSON text. Two backends are provided:

* ``SqlKeyValueStore`` keeps each key as a row in the ``stored_values``
  table through SQLAlchemy (the default).
* ``JsonFileStore`` keeps each key as ``<key>.json`` under ``DATA_DIR`` for
  deployments that prefer plain files.

Reads never raise for bad data: a value that cannot be decoded is logged and
reported as missing, so callers fall back to their defaults.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from ..core.config import AppSettings
from ..models.stored_value import StoredValue
from .session import create_session_factory

logger = logging.getLogger(__name__)

DEVICES_KEY = "devices"
ARCHIVED_KEY = "archived"
NOTES_KEY = "notes"
CHANGE_LOGS_KEY = "changeLogs"
ADMIN_PASSWORD_KEY = "admin_password"
THEME_KEY = "theme"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


def _decode(key: str, raw: str) -> Any | None:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored value for %s is not valid JSON; ignoring it", key)
        return None


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="seconds")


class SqlKeyValueStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Any | None:
        db: Session = self._session_factory()
        try:
            row = db.get(StoredValue, key)
            if row is None:
                return None
            return _decode(key, row.value)
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        db: Session = self._session_factory()
        try:
            db.merge(StoredValue(key=key, value=payload, updated_at=_now()))
            db.commit()
        finally:
            db.close()


class JsonFileStore:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        return _decode(key, path.read_text(encoding="utf-8"))

    def set(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        scratch = path.with_suffix(".json.tmp")
        scratch.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")
        scratch.replace(path)


def build_store(settings: AppSettings) -> KeyValueStore:
    if settings.STORAGE_BACKEND == "json":
        return JsonFileStore(settings.DATA_DIR)
    return SqlKeyValueStore(create_session_factory(settings.database_url))


__all__ = [
    "ADMIN_PASSWORD_KEY",
    "ARCHIVED_KEY",
    "CHANGE_LOGS_KEY",
    "DEVICES_KEY",
    "JsonFileStore",
    "KeyValueStore",
    "NOTES_KEY",
    "SqlKeyValueStore",
    "THEME_KEY",
    "build_store",
]
