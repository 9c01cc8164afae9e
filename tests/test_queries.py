import os
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from lab_inventory.crud.devices import SEED_DEVICE_ROWS
from lab_inventory.schemas.device import Device, Note
from lab_inventory.services.changelog import diff_devices
from lab_inventory.services.queries import (
    CalibrationStatus,
    DeviceFilter,
    SortDirection,
    classify_calibration,
    filter_devices,
    filter_notes,
    parse_calendar_date,
    status_options,
    toggle_sort,
    unit_options,
)


@pytest.fixture()
def devices():
    return [Device.model_validate(row) for row in SEED_DEVICE_ROWS]


def test_no_criteria_returns_everything_in_order(devices):
    assert filter_devices(devices) == devices


def test_filters_combine_with_and(devices):
    rows = filter_devices(devices, DeviceFilter(unit="R&D Center", status="In Maintenance"))
    assert [device.id for device in rows] == [3]

    rows = filter_devices(devices, DeviceFilter(unit="R&D Center", status="Running"))
    assert rows == []


def test_search_is_case_insensitive_across_fields(devices):
    assert [d.id for d in filter_devices(devices, DeviceFilter(search="sn-abc"))] == [3]
    assert [d.id for d in filter_devices(devices, DeviceFilter(search="  PIPETMAN "))] == [1]
    assert [d.id for d in filter_devices(devices, DeviceFilter(search="2023-10"))] == [4]


def test_calibration_window_is_inclusive_and_skips_unparseable(devices):
    devices.append(devices[0].model_copy(update={"id": 5, "calibration_date": "soon"}))
    criteria = DeviceFilter(calibration_from=date(2024, 7, 20), calibration_to=date(2024, 8, 1))

    assert [d.id for d in filter_devices(devices, criteria)] == [2, 3]


def test_filtering_does_not_mutate_input(devices):
    snapshot = list(devices)
    sort = toggle_sort(None, "equipment")
    filter_devices(devices, DeviceFilter(active="Yes"), sort)
    assert devices == snapshot


def test_toggle_sort_cycles_direction():
    first = toggle_sort(None, "equipment")
    assert first.direction is SortDirection.ASC

    second = toggle_sort(first, "Ekipman")
    assert second.key == "equipment"
    assert second.direction is SortDirection.DESC

    third = toggle_sort(second, "equipment")
    assert third.direction is SortDirection.ASC

    assert toggle_sort(second, "unit").direction is SortDirection.ASC


def test_toggle_sort_rejects_unknown_fields():
    with pytest.raises(ValueError):
        toggle_sort(None, "colour")


def test_sort_by_integer_column_descending(devices):
    sort = toggle_sort(toggle_sort(None, "calibration_period_months"), "calibration_period_months")
    rows = filter_devices(devices, sort=sort)
    assert [d.calibration_period_months for d in rows] == [24, 12, 12, 6]
    assert [d.id for d in rows[1:3]] == [1, 3]


def test_active_filter_count_counts_date_range_once():
    assert DeviceFilter().active_filter_count == 0
    assert DeviceFilter(unit="Physics Lab", search="x").active_filter_count == 0
    criteria = DeviceFilter(
        status="Running",
        active="No",
        calibration_from=date(2024, 1, 1),
        calibration_to=date(2024, 12, 31),
    )
    assert criteria.active_filter_count == 3


def test_options_start_with_all_and_keep_first_seen_order(devices):
    assert unit_options(devices) == ["All", "Chemistry Lab", "Physics Lab", "R&D Center", "Biology Lab"]
    assert status_options(devices) == ["All", "Running", "In Maintenance", "Calibration Overdue"]


def test_classify_calibration_windows():
    today = date(2025, 1, 10)
    assert classify_calibration("2025-01-09", today=today) is CalibrationStatus.OVERDUE
    assert classify_calibration("2025-01-10", today=today) is CalibrationStatus.DUE_SOON
    assert classify_calibration("2025-02-09", today=today) is CalibrationStatus.DUE_SOON
    assert classify_calibration("2025-02-10", today=today) is CalibrationStatus.NORMAL
    assert classify_calibration("", today=today) is CalibrationStatus.NORMAL


def test_parse_calendar_date_accepts_common_formats():
    assert parse_calendar_date("2024-12-15") == date(2024, 12, 15)
    assert parse_calendar_date("15.12.2024") == date(2024, 12, 15)
    assert parse_calendar_date("2024-12-15T08:00:00Z") == date(2024, 12, 15)
    assert parse_calendar_date("not a date") is None


def test_filter_notes_is_case_insensitive():
    notes = [
        Note(id=1, text="Replaced FILTER", created_at="2025-01-01T00:00:00"),
        Note(id=2, text="Cleaned housing", created_at="2025-01-02T00:00:00"),
    ]
    assert filter_notes(notes, "filter") == [notes[0]]
    assert filter_notes(notes, "") == notes


def test_diff_devices_ignores_id_and_unchanged_fields(devices):
    before = devices[1]
    after = before.model_copy(update={"model": "Explorer EX324", "active": "No"})

    entries = diff_devices(before, after, timestamp="2025-03-01T00:00:00.000+00:00")

    assert [(e.field, e.previous, e.new) for e in entries] == [
        ("Model", "Explorer EX224", "Explorer EX324"),
        ("Aktif", "Yes", "No"),
    ]
    assert all(e.timestamp == "2025-03-01T00:00:00.000+00:00" for e in entries)
    assert diff_devices(before, before) == []


def test_due_soon_threshold_around_thirty_days():
    today = date(2025, 6, 1)
    assert classify_calibration(today - timedelta(days=1), today=today) is CalibrationStatus.OVERDUE
    assert classify_calibration(today + timedelta(days=29), today=today) is CalibrationStatus.DUE_SOON
    assert classify_calibration(today + timedelta(days=31), today=today) is CalibrationStatus.NORMAL
