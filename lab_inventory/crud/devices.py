"""Device repository: the single owner of inventory state.

*What:* Holds the active devices, the archive, per-device notes and
per-device change logs, and exposes the only operations allowed to change
them.
*When:* Built once when the application starts (``load``), then shared by
every request through ``app.state``; ``flush`` writes everything back on
shutdown.
*How:* Each mutation settles the in-memory collection first and then writes
the affected keys to the injected ``KeyValueStore`` before returning.
Sync handlers call in from FastAPI worker threads. Every mutation holds the
repository lock from its first read until the store write returns.

Lookups that miss (updating, archiving or restoring an unknown identifier,
deleting an unknown note) are silent no-ops. The methods report whether
anything happened through their return value so callers can choose to care.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from pydantic import TypeAdapter, ValidationError

from ..core.device_fields import ACTIVE_YES
from ..db.store import ARCHIVED_KEY, CHANGE_LOGS_KEY, DEVICES_KEY, NOTES_KEY, KeyValueStore
from ..schemas.device import ArchivedDevice, ChangeLogEntry, Device, DeviceDraft, Note
from ..services.changelog import diff_devices

logger = logging.getLogger(__name__)

SEED_DEVICE_ROWS: tuple[dict[str, Any], ...] = (
    {
        "id": 1,
        "equipment": "Digital Pipette",
        "unit_code": "P-001",
        "unit": "Chemistry Lab",
        "model": "Pipetman L",
        "serial_number": "SN-12345",
        "calibration_date": "2024-12-15",
        "calibration_period_months": 12,
        "last_calibration": "2023-12-15",
        "status": "Running",
        "active": "Yes",
    },
    {
        "id": 2,
        "equipment": "Analytical Balance",
        "unit_code": "T-005",
        "unit": "Physics Lab",
        "model": "Explorer EX224",
        "serial_number": "SN-67890",
        "calibration_date": "2024-08-01",
        "calibration_period_months": 6,
        "last_calibration": "2024-02-01",
        "status": "Running",
        "active": "Yes",
    },
    {
        "id": 3,
        "equipment": "Climatic Chamber",
        "unit_code": "KK-002",
        "unit": "R&D Center",
        "model": "Climacell EVO",
        "serial_number": "SN-ABCDE",
        "calibration_date": "2024-07-20",
        "calibration_period_months": 12,
        "last_calibration": "2023-07-20",
        "status": "In Maintenance",
        "active": "Yes",
    },
    {
        "id": 4,
        "equipment": "Centrifuge",
        "unit_code": "S-010",
        "unit": "Biology Lab",
        "model": "5424 R",
        "serial_number": "SN-FGHIJ",
        "calibration_date": "2023-10-10",
        "calibration_period_months": 24,
        "last_calibration": "2021-10-10",
        "status": "Calibration Overdue",
        "active": "Yes",
    },
)

_DEVICE_LIST = TypeAdapter(list[Device])
_ARCHIVE_LIST = TypeAdapter(list[ArchivedDevice])
_NOTE_MAP = TypeAdapter(dict[int, list[Note]])
_LOG_MAP = TypeAdapter(dict[int, list[ChangeLogEntry]])


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _serialized(method: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(method)
    def wrapper(self: "DeviceRepository", *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class TimeOrderedIds:
    """Millisecond-clock identifiers that never repeat or go backwards."""

    def __init__(self, floor: int = 0, clock: Callable[[], float] = time.time) -> None:
        self._last = floor
        self._clock = clock

    def advance_past(self, value: int) -> None:
        self._last = max(self._last, value)

    def next(self) -> int:
        candidate = int(self._clock() * 1000)
        self._last = candidate if candidate > self._last else self._last + 1
        return self._last


class DeviceRepository:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
        ids: TimeOrderedIds | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._ids = ids or TimeOrderedIds()
        self._devices: list[Device] = []
        self._archived: list[ArchivedDevice] = []
        self._notes: dict[int, list[Note]] = {}
        self._change_logs: dict[int, list[ChangeLogEntry]] = {}
        self._lock = threading.RLock()

    # ---------- lifecycle ----------
    @_serialized
    def load(self) -> "DeviceRepository":
        """Read every collection from the store, falling back to defaults."""

        self._devices = self._read(DEVICES_KEY, _DEVICE_LIST, lambda: [Device.model_validate(row) for row in SEED_DEVICE_ROWS])
        self._archived = self._read(ARCHIVED_KEY, _ARCHIVE_LIST, list)
        self._notes = self._read(NOTES_KEY, _NOTE_MAP, dict)
        self._change_logs = self._read(CHANGE_LOGS_KEY, _LOG_MAP, dict)

        for device in [*self._devices, *self._archived]:
            self._ids.advance_past(device.id)
        for notes in self._notes.values():
            for note in notes:
                self._ids.advance_past(note.id)
        logger.info(
            "inventory.loaded",
            extra={"extra_data": {"devices": len(self._devices), "archived": len(self._archived)}},
        )
        return self

    @_serialized
    def flush(self) -> None:
        self._persist(DEVICES_KEY, ARCHIVED_KEY, NOTES_KEY, CHANGE_LOGS_KEY)

    def _read(self, key: str, adapter: TypeAdapter, default: Callable[[], Any]) -> Any:
        raw = self._store.get(key)
        if raw is None:
            return default()
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Stored %s failed validation; using defaults (%d errors)", key, exc.error_count())
            return default()

    def _persist(self, *keys: str) -> None:
        for key in keys:
            if key == DEVICES_KEY:
                value: Any = [device.model_dump(mode="json") for device in self._devices]
            elif key == ARCHIVED_KEY:
                value = [device.model_dump(mode="json") for device in self._archived]
            elif key == NOTES_KEY:
                value = {
                    str(device_id): [note.model_dump(mode="json") for note in notes]
                    for device_id, notes in self._notes.items()
                }
            elif key == CHANGE_LOGS_KEY:
                value = {
                    str(device_id): [entry.model_dump(mode="json") for entry in entries]
                    for device_id, entries in self._change_logs.items()
                }
            else:
                raise KeyError(key)
            self._store.set(key, value)

    def _timestamp(self) -> str:
        return self._clock().isoformat(timespec="milliseconds")

    # ---------- read-only views ----------
    @property
    def devices(self) -> tuple[Device, ...]:
        return tuple(self._devices)

    @property
    def archived(self) -> tuple[ArchivedDevice, ...]:
        return tuple(self._archived)

    def get(self, device_id: int) -> Device | None:
        return next((device for device in self._devices if device.id == device_id), None)

    def get_archived(self, device_id: int) -> ArchivedDevice | None:
        return next((device for device in self._archived if device.id == device_id), None)

    def notes_for(self, device_id: int) -> tuple[Note, ...]:
        return tuple(self._notes.get(device_id, ()))

    def change_log_for(self, device_id: int) -> tuple[ChangeLogEntry, ...]:
        return tuple(self._change_logs.get(device_id, ()))

    # ---------- devices ----------
    def _new_device(self, draft: DeviceDraft | Mapping[str, Any]) -> Device:
        if not isinstance(draft, DeviceDraft):
            draft = DeviceDraft.model_validate(draft)
        values = draft.model_dump(include=set(DeviceDraft.model_fields))
        return Device.model_validate({**values, "id": self._ids.next(), "active": ACTIVE_YES})

    @_serialized
    def create(self, draft: DeviceDraft | Mapping[str, Any]) -> Device:
        device = self._new_device(draft)
        self._devices.append(device)
        self._persist(DEVICES_KEY)
        logger.info("device.created", extra={"extra_data": {"device_id": device.id}})
        return device

    @_serialized
    def bulk_import(self, drafts: Iterable[DeviceDraft | Mapping[str, Any]]) -> list[Device]:
        created = [self._new_device(draft) for draft in drafts]
        self._devices.extend(created)
        self._persist(DEVICES_KEY)
        logger.info("device.imported", extra={"extra_data": {"count": len(created)}})
        return created

    @_serialized
    def update(self, device: Device) -> bool:
        index = next((i for i, existing in enumerate(self._devices) if existing.id == device.id), None)
        if index is None:
            return False
        changes = diff_devices(self._devices[index], device, timestamp=self._timestamp())
        self._devices[index] = device
        if changes:
            self._change_logs.setdefault(device.id, []).extend(changes)
            self._persist(DEVICES_KEY, CHANGE_LOGS_KEY)
        else:
            self._persist(DEVICES_KEY)
        logger.info(
            "device.updated",
            extra={"extra_data": {"device_id": device.id, "changed": [entry.field for entry in changes]}},
        )
        return True

    @_serialized
    def archive(self, device_id: int) -> ArchivedDevice | None:
        device = self.get(device_id)
        if device is None:
            return None
        archived = ArchivedDevice.model_validate({**device.model_dump(), "archived_at": self._timestamp()})
        self._archived.append(archived)
        self._devices = [item for item in self._devices if item.id != device_id]
        self._persist(ARCHIVED_KEY, DEVICES_KEY)
        logger.info("device.archived", extra={"extra_data": {"device_id": device_id}})
        return archived

    @_serialized
    def restore(self, device_id: int) -> Device | None:
        archived = self.get_archived(device_id)
        if archived is None:
            return None
        device = Device.model_validate(archived.model_dump(exclude={"archived_at"}))
        self._devices.append(device)
        self._archived = [item for item in self._archived if item.id != device_id]
        self._persist(DEVICES_KEY, ARCHIVED_KEY)
        logger.info("device.restored", extra={"extra_data": {"device_id": device_id}})
        return device

    # ---------- notes ----------
    @_serialized
    def add_note(self, device_id: int, text: str) -> Note:
        note = Note(id=self._ids.next(), text=text, created_at=self._timestamp())
        self._notes.setdefault(device_id, []).append(note)
        self._persist(NOTES_KEY)
        return note

    @_serialized
    def delete_note(self, device_id: int, note_id: int) -> bool:
        notes = self._notes.get(device_id, [])
        remaining = [note for note in notes if note.id != note_id]
        if len(remaining) == len(notes):
            return False
        self._notes[device_id] = remaining
        self._persist(NOTES_KEY)
        return True
