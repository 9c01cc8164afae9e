"""Excel import/export for device lists (pandas + openpyxl)."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from io import BytesIO
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from ..core.device_fields import (
    ACTIVE_EXPORT_FIELDS,
    ARCHIVE_EXPORT_FIELDS,
    DRAFT_FIELDS,
    DeviceField,
)
from ..schemas.device import DeviceDraft

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DEVICE_SHEET = "Cihazlar"
ARCHIVE_SHEET = "Arşiv"


class SpreadsheetError(Exception):
    """Raised when a workbook cannot be read or written."""


def read_rows(data: bytes) -> list[dict[str, Any]]:
    """Return the first sheet as one ``{header: cell}`` mapping per row."""

    if not data:
        raise SpreadsheetError("The uploaded file is empty")
    try:
        frame = pd.read_excel(BytesIO(data), sheet_name=0)
    except Exception as exc:
        logger.warning("Spreadsheet import failed: %s", exc)
        raise SpreadsheetError(f"Could not read spreadsheet: {exc}") from exc
    frame = frame.astype(object).where(frame.notna(), None)
    return [{str(key).strip(): value for key, value in row.items()} for row in frame.to_dict(orient="records")]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _cell_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _cell_int(value: Any, default: int) -> int:
    try:
        return int(float(str(value).strip().replace(",", ".")))
    except (TypeError, ValueError):
        return default


def _lookup(row: Mapping[str, Any], field: DeviceField) -> Any:
    for key in (field.label, field.name):
        if key in row:
            return row[key]
    return None


def rows_to_drafts(rows: Iterable[Mapping[str, Any]]) -> list[DeviceDraft]:
    """Coerce raw sheet rows into device drafts, skipping rows with no known cell."""

    defaults = DeviceDraft()
    drafts: list[DeviceDraft] = []
    for row in rows:
        values: dict[str, Any] = {}
        for field in DRAFT_FIELDS:
            raw = _lookup(row, field)
            if _is_blank(raw):
                continue
            if field.kind is int:
                values[field.name] = _cell_int(raw, getattr(defaults, field.name))
            else:
                values[field.name] = _cell_text(raw)
        if values:
            drafts.append(DeviceDraft.model_validate(values))
    return drafts


def _write(records: Sequence[Any], fields: Sequence[DeviceField], sheet_name: str) -> bytes:
    frame = pd.DataFrame(
        [[field.read(record) for field in fields] for record in records],
        columns=[field.label for field in fields],
    )
    buffer = BytesIO()
    try:
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            frame.to_excel(writer, sheet_name=sheet_name, index=False)
    except Exception as exc:
        raise SpreadsheetError(f"Could not build spreadsheet: {exc}") from exc
    return buffer.getvalue()


def export_devices(devices: Sequence[Any]) -> bytes:
    return _write(devices, ACTIVE_EXPORT_FIELDS, DEVICE_SHEET)


def export_archived(devices: Sequence[Any]) -> bytes:
    return _write(devices, ARCHIVE_EXPORT_FIELDS, ARCHIVE_SHEET)
