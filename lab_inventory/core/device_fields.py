"""Canonical device columns, their spreadsheet labels, and filter sentinels.

The labels double as spreadsheet headers and as the ``field`` recorded in
change-log entries, so they stay identical to the headers of workbooks the
lab already keeps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

EQUIPMENT_LABEL = "Ekipman"
UNIT_CODE_LABEL = "Birim Kodu"
UNIT_LABEL = "Birim"
MODEL_LABEL = "Model"
SERIAL_NUMBER_LABEL = "Seri No"
CALIBRATION_DATE_LABEL = "Kalibrasyon Tarihi"
CALIBRATION_PERIOD_LABEL = "Kalibrasyon Periyodu (ay)"
LAST_CALIBRATION_LABEL = "Son Kalibrasyon"
STATUS_LABEL = "Durum"
ACTIVE_LABEL = "Aktif"
ID_LABEL = "ID"
ARCHIVED_AT_LABEL = "Arşivlenme Tarihi"

ALL = "All"
ACTIVE_YES = "Yes"
ACTIVE_NO = "No"
ACTIVE_CHOICES = (ACTIVE_YES, ACTIVE_NO)

DEFAULT_STATUS = "Running"


@dataclass(frozen=True)
class DeviceField:
    name: str
    label: str
    kind: type

    @property
    def empty(self) -> Any:
        """Value an absent entry sorts as."""

        return 0 if self.kind is int else ""

    def read(self, record: Any) -> Any:
        return getattr(record, self.name)


DEVICE_FIELDS: tuple[DeviceField, ...] = (
    DeviceField("equipment", EQUIPMENT_LABEL, str),
    DeviceField("unit_code", UNIT_CODE_LABEL, str),
    DeviceField("unit", UNIT_LABEL, str),
    DeviceField("model", MODEL_LABEL, str),
    DeviceField("serial_number", SERIAL_NUMBER_LABEL, str),
    DeviceField("calibration_date", CALIBRATION_DATE_LABEL, str),
    DeviceField("calibration_period_months", CALIBRATION_PERIOD_LABEL, int),
    DeviceField("last_calibration", LAST_CALIBRATION_LABEL, str),
    DeviceField("status", STATUS_LABEL, str),
    DeviceField("active", ACTIVE_LABEL, str),
    DeviceField("id", ID_LABEL, int),
)

ARCHIVED_AT_FIELD = DeviceField("archived_at", ARCHIVED_AT_LABEL, str)

# Everything an edit can change; the identifier is immutable.
COMPARABLE_FIELDS = tuple(field for field in DEVICE_FIELDS if field.name != "id")
# Fields a user fills in; the identifier and active flag are assigned by the repository.
DRAFT_FIELDS = tuple(field for field in COMPARABLE_FIELDS if field.name != "active")

ACTIVE_EXPORT_FIELDS = COMPARABLE_FIELDS
ARCHIVE_EXPORT_FIELDS = COMPARABLE_FIELDS + (ARCHIVED_AT_FIELD, DEVICE_FIELDS[-1])

_LOOKUP = {field.name: field for field in DEVICE_FIELDS}
_LOOKUP.update({field.label: field for field in DEVICE_FIELDS})


def resolve_field(key: str | None) -> DeviceField | None:
    """Find a device field by attribute name or column label."""

    if not key:
        return None
    return _LOOKUP.get(key.strip())


__all__ = [
    "ACTIVE_CHOICES",
    "ACTIVE_EXPORT_FIELDS",
    "ACTIVE_NO",
    "ACTIVE_YES",
    "ALL",
    "ARCHIVE_EXPORT_FIELDS",
    "ARCHIVED_AT_FIELD",
    "COMPARABLE_FIELDS",
    "DEFAULT_STATUS",
    "DEVICE_FIELDS",
    "DRAFT_FIELDS",
    "DeviceField",
    "resolve_field",
]
