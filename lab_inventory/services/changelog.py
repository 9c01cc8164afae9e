from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..core.device_fields import COMPARABLE_FIELDS, DeviceField
from ..schemas.device import ChangeLogEntry, Device


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def diff_devices(
    previous: Device,
    current: Device,
    *,
    timestamp: str | None = None,
    fields: tuple[DeviceField, ...] = COMPARABLE_FIELDS,
) -> list[ChangeLogEntry]:
    """Return one entry per field whose typed value changed, in column order.

    Values are compared as stored and only turned into text for the entry, so
    ``12`` and ``12`` on an integer column never register as a change. The
    identifier is not part of ``fields`` and is never reported.
    """

    stamp = timestamp or datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")
    changes: list[ChangeLogEntry] = []
    for field in fields:
        before = field.read(previous)
        after = field.read(current)
        if before == after:
            continue
        changes.append(
            ChangeLogEntry(
                field=field.label,
                previous=_as_text(before),
                new=_as_text(after),
                timestamp=stamp,
            )
        )
    return changes
