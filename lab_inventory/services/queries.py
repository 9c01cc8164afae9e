"""Read-only projections over the device collection.

Nothing in this module mutates its inputs: every function takes a sequence
and hands back a new list (or a derived value), so the same inputs always
produce the same output.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Sequence

from ..core.device_fields import ALL, DEVICE_FIELDS, DeviceField, resolve_field
from ..schemas.device import Device, Note

_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%Y/%m/%d")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class CalibrationStatus(str, Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    NORMAL = "normal"


@dataclass(frozen=True)
class SortState:
    field: DeviceField
    direction: SortDirection = SortDirection.ASC

    @property
    def key(self) -> str:
        return self.field.name


@dataclass(frozen=True)
class DeviceFilter:
    unit: str = ALL
    search: str = ""
    status: str = ALL
    active: str = ALL
    calibration_from: date | None = None
    calibration_to: date | None = None

    @property
    def active_filter_count(self) -> int:
        """Number of advanced filters in use (the date range counts once)."""

        count = 0
        if self.status != ALL:
            count += 1
        if self.active != ALL:
            count += 1
        if self.calibration_from or self.calibration_to:
            count += 1
        return count


def parse_calendar_date(value: Any) -> date | None:
    """Best-effort conversion of a stored calibration date into a ``date``."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def toggle_sort(current: SortState | None, key: str) -> SortState:
    """Apply a click on a column header to the current sort.

    Clicking the column already sorted ascending flips it to descending; any
    other click sorts ascending on the clicked column.
    """

    field = resolve_field(key)
    if field is None:
        raise ValueError(f"Unknown sort field: {key}")
    if current is not None and current.field == field and current.direction is SortDirection.ASC:
        return SortState(field=field, direction=SortDirection.DESC)
    return SortState(field=field, direction=SortDirection.ASC)


def _matches_search(device: Device, needle: str) -> bool:
    for field in DEVICE_FIELDS:
        value = field.read(device)
        if needle in str(value if value is not None else "").casefold():
            return True
    return False


def _within_bounds(device: Device, lower: date | None, upper: date | None) -> bool:
    if lower is None and upper is None:
        return True
    calibrated = parse_calendar_date(device.calibration_date)
    if calibrated is None:
        return False
    if lower is not None and calibrated < lower:
        return False
    if upper is not None and calibrated > upper:
        return False
    return True


def _sort_value(device: Device, field: DeviceField) -> Any:
    value = field.read(device)
    return field.empty if value is None else value


def filter_devices(
    devices: Sequence[Device],
    criteria: DeviceFilter | None = None,
    sort: SortState | None = None,
) -> list[Device]:
    """Apply every filter (AND) and then the optional sort."""

    criteria = criteria or DeviceFilter()
    needle = criteria.search.strip().casefold()
    rows: list[Device] = []
    for device in devices:
        if criteria.unit != ALL and device.unit != criteria.unit:
            continue
        if needle and not _matches_search(device, needle):
            continue
        if criteria.status != ALL and device.status != criteria.status:
            continue
        if criteria.active != ALL and device.active != criteria.active:
            continue
        if not _within_bounds(device, criteria.calibration_from, criteria.calibration_to):
            continue
        rows.append(device)

    if sort is not None:
        rows.sort(
            key=lambda device: _sort_value(device, sort.field),
            reverse=sort.direction is SortDirection.DESC,
        )
    return rows


def filter_notes(notes: Iterable[Note], term: str | None) -> list[Note]:
    """Notes whose text contains ``term`` (case-insensitive), oldest first."""

    needle = (term or "").casefold()
    return [note for note in notes if needle in note.text.casefold()]


def classify_calibration(
    value: Any,
    *,
    today: date | None = None,
    due_soon_days: int = 30,
) -> CalibrationStatus:
    calibrated = parse_calendar_date(value)
    if calibrated is None:
        return CalibrationStatus.NORMAL
    today = today or date.today()
    if calibrated < today:
        return CalibrationStatus.OVERDUE
    if calibrated <= today + timedelta(days=due_soon_days):
        return CalibrationStatus.DUE_SOON
    return CalibrationStatus.NORMAL


def _options(values: Iterable[str]) -> list[str]:
    seen: list[str] = [ALL]
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def unit_options(devices: Sequence[Device]) -> list[str]:
    return _options(device.unit for device in devices)


def status_options(devices: Sequence[Device]) -> list[str]:
    return _options(device.status for device in devices)
