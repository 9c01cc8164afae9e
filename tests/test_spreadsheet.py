import os
import sys
from datetime import datetime
from io import BytesIO
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from lab_inventory.crud.devices import SEED_DEVICE_ROWS
from lab_inventory.schemas.device import ArchivedDevice, Device
from lab_inventory.services.spreadsheet import (
    ARCHIVE_SHEET,
    DEVICE_SHEET,
    SpreadsheetError,
    export_archived,
    export_devices,
    read_rows,
    rows_to_drafts,
)


def _workbook(rows):
    buffer = BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


def test_import_maps_labels_and_coerces_cells():
    data = _workbook(
        [
            {
                "Ekipman": "Spectrophotometer",
                "Birim": "Chemistry Lab",
                "Seri No": 4711,
                "Kalibrasyon Tarihi": datetime(2025, 5, 1),
                "Kalibrasyon Periyodu (ay)": 6,
                "Durum": "Running",
            },
            {"Ekipman": "Oven", "Birim": "R&D Center", "Kalibrasyon Periyodu (ay)": None},
        ]
    )

    drafts = rows_to_drafts(read_rows(data))

    assert len(drafts) == 2
    assert drafts[0].equipment == "Spectrophotometer"
    assert drafts[0].serial_number == "4711"
    assert drafts[0].calibration_date == "2025-05-01"
    assert drafts[0].calibration_period_months == 6
    assert drafts[1].calibration_period_months == 12
    assert drafts[1].status == "Running"


def test_rows_without_known_columns_are_skipped():
    drafts = rows_to_drafts([{"Unrelated": "x"}, {"equipment": "Scale", "unit": "Physics Lab"}])
    assert [draft.equipment for draft in drafts] == ["Scale"]


def test_garbage_upload_raises():
    with pytest.raises(SpreadsheetError):
        read_rows(b"definitely not a workbook")
    with pytest.raises(SpreadsheetError):
        read_rows(b"")


def test_export_devices_uses_column_labels_without_id():
    devices = [Device.model_validate(row) for row in SEED_DEVICE_ROWS]

    frame = pd.read_excel(BytesIO(export_devices(devices)), sheet_name=DEVICE_SHEET)

    assert list(frame.columns) == [
        "Ekipman",
        "Birim Kodu",
        "Birim",
        "Model",
        "Seri No",
        "Kalibrasyon Tarihi",
        "Kalibrasyon Periyodu (ay)",
        "Son Kalibrasyon",
        "Durum",
        "Aktif",
    ]
    assert frame["Ekipman"].tolist() == [row["equipment"] for row in SEED_DEVICE_ROWS]


def test_export_archived_appends_archive_date_and_id():
    archived = [ArchivedDevice.model_validate({**SEED_DEVICE_ROWS[0], "archived_at": "2025-03-01T09:30:00.000+00:00"})]

    frame = pd.read_excel(BytesIO(export_archived(archived)), sheet_name=ARCHIVE_SHEET)

    assert list(frame.columns)[-2:] == ["Arşivlenme Tarihi", "ID"]
    assert frame["ID"].tolist() == [1]
