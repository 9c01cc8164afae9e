import os
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from lab_inventory.crud.devices import SEED_DEVICE_ROWS, DeviceRepository, TimeOrderedIds
from lab_inventory.db.session import create_session_factory
from lab_inventory.db.store import ARCHIVED_KEY, DEVICES_KEY, NOTES_KEY, JsonFileStore, SqlKeyValueStore
from lab_inventory.schemas.device import DeviceDraft


def _fixed_clock():
    return datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def store():
    return SqlKeyValueStore(create_session_factory("sqlite://"))


@pytest.fixture()
def repository(store):
    return DeviceRepository(store, clock=_fixed_clock).load()


def _draft(**overrides):
    values = {
        "equipment": "pH Meter",
        "unit_code": "PH-01",
        "unit": "Chemistry Lab",
        "model": "SevenCompact",
        "serial_number": "SN-PH1",
        "calibration_date": "2025-06-01",
        "calibration_period_months": 12,
        "last_calibration": "2024-06-01",
    }
    values.update(overrides)
    return DeviceDraft(**values)


def test_empty_store_is_seeded_with_sample_devices(repository):
    assert [device.id for device in repository.devices] == [row["id"] for row in SEED_DEVICE_ROWS]
    assert repository.archived == ()
    assert all(device.active == "Yes" for device in repository.devices)


def test_create_assigns_unique_ids_and_defaults(repository):
    first = repository.create(_draft())
    second = repository.create(_draft(serial_number="SN-PH2"))

    assert first.id != second.id
    assert first.id > max(row["id"] for row in SEED_DEVICE_ROWS)
    assert first.active == "Yes"
    assert first.status == "Running"
    assert repository.get(first.id) == first


def test_create_accepts_column_labels(repository):
    device = repository.create({"Ekipman": "Incubator", "Birim": "Biology Lab", "Kalibrasyon Periyodu (ay)": 6})

    assert device.equipment == "Incubator"
    assert device.unit == "Biology Lab"
    assert device.calibration_period_months == 6


def test_time_ordered_ids_never_repeat_within_same_millisecond():
    ids = TimeOrderedIds(clock=lambda: 1700000000.0)
    issued = [ids.next() for _ in range(5)]

    assert issued == sorted(set(issued))
    assert issued[0] == 1700000000000


def test_archive_then_restore_round_trip(repository):
    device = repository.get(2)

    archived = repository.archive(2)
    assert archived is not None
    assert archived.archived_at == _fixed_clock().isoformat(timespec="milliseconds")
    assert repository.get(2) is None
    assert repository.get_archived(2) == archived

    restored = repository.restore(2)
    assert restored == device
    assert repository.get_archived(2) is None
    assert repository.devices[-1] == device


def test_device_lives_in_exactly_one_collection(repository):
    repository.archive(1)
    repository.archive(3)
    repository.restore(1)

    active_ids = {device.id for device in repository.devices}
    archived_ids = {device.id for device in repository.archived}
    assert active_ids.isdisjoint(archived_ids)
    assert active_ids | archived_ids == {1, 2, 3, 4}


def test_unknown_ids_are_silent_noops(repository):
    before = repository.devices

    assert repository.archive(999) is None
    assert repository.restore(999) is None
    assert repository.update(repository.get(1).model_copy(update={"id": 999})) is False
    assert repository.devices == before


def test_update_records_changes_in_column_order(repository):
    current = repository.get(1)
    edited = current.model_copy(update={"status": "In Maintenance", "calibration_period_months": 6})

    assert repository.update(edited) is True

    log = repository.change_log_for(1)
    assert [entry.field for entry in log] == ["Kalibrasyon Periyodu (ay)", "Durum"]
    assert log[0].previous == "12" and log[0].new == "6"
    assert log[1].previous == "Running" and log[1].new == "In Maintenance"
    assert repository.get(1).status == "In Maintenance"


def test_update_without_changes_adds_no_log_entries(repository):
    assert repository.update(repository.get(4)) is True
    assert repository.change_log_for(4) == ()


def test_state_survives_reload(store):
    first = DeviceRepository(store, clock=_fixed_clock).load()
    created = first.create(_draft())
    first.archive(3)
    note = first.add_note(created.id, "Checked electrode")

    second = DeviceRepository(store, clock=_fixed_clock).load()

    assert second.get(created.id) == created
    assert second.get_archived(3) is not None
    assert second.notes_for(created.id) == (note,)
    later = second.create(_draft(serial_number="SN-LATER"))
    assert later.id > note.id


def test_corrupt_collections_fall_back_to_defaults(store):
    store.set(DEVICES_KEY, [{"id": "not-a-number"}])
    store.set(ARCHIVED_KEY, {"unexpected": True})
    store.set(NOTES_KEY, "garbage")

    repository = DeviceRepository(store).load()

    assert len(repository.devices) == len(SEED_DEVICE_ROWS)
    assert repository.archived == ()
    assert repository.notes_for(1) == ()


def test_notes_are_scoped_per_device(repository):
    kept = repository.add_note(1, "Battery replaced")
    other = repository.add_note(2, "Needs new calibration weights")

    assert repository.delete_note(1, other.id) is False
    assert repository.notes_for(1) == (kept,)
    assert repository.delete_note(1, kept.id) is True
    assert repository.notes_for(1) == ()
    assert repository.notes_for(2) == (other,)


def test_bulk_import_appends_in_order(repository):
    created = repository.bulk_import([_draft(serial_number="A"), _draft(serial_number="B")])

    assert [device.serial_number for device in created] == ["A", "B"]
    assert list(repository.devices[-2:]) == created


def test_json_file_store_round_trip(tmp_path):
    store = JsonFileStore(tmp_path)
    repository = DeviceRepository(store).load()
    device = repository.create(_draft())

    reloaded = DeviceRepository(JsonFileStore(tmp_path)).load()

    assert reloaded.get(device.id) == device
    assert (tmp_path / "devices.json").exists()


def test_seed_archive_restore_then_edit_scenario(repository):
    repository.archive(3)
    repository.restore(3)
    repository.update(repository.get(3).model_copy(update={"status": "Maintenance"}))

    assert len(repository.devices) == 4
    assert repository.archived == ()
    log = repository.change_log_for(3)
    assert [entry.field for entry in log] == ["Durum"]
    assert log[0].previous == "In Maintenance"
    assert log[0].new == "Maintenance"


def test_notes_survive_archive_and_restore(repository):
    note = repository.add_note(3, "Door seal worn")

    repository.archive(3)
    assert repository.notes_for(3) == (note,)
    repository.restore(3)
    assert repository.notes_for(3) == (note,)
    assert repository.notes_for(4) == ()


class _DictStore:
    def __init__(self):
        self.values = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value


def test_concurrent_updates_and_archives_keep_collections_consistent():
    repository = DeviceRepository(_DictStore()).load()
    repository.bulk_import([_draft(serial_number=f"SN-{i}") for i in range(30)])
    last_id = repository.devices[-1].id
    expected_ids = {device.id for device in repository.devices}
    errors = []

    def edit_last():
        try:
            for i in range(300):
                current = repository.get(last_id)
                repository.update(current.model_copy(update={"status": f"Run {i}"}))
        except Exception as exc:  # pragma: no cover - surfaced through the assertion below
            errors.append(exc)

    def cycle_first():
        try:
            for _ in range(300):
                repository.archive(1)
                repository.restore(1)
        except Exception as exc:  # pragma: no cover
            errors.append(exc)

    interval = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    try:
        workers = [threading.Thread(target=edit_last), threading.Thread(target=cycle_first)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
    finally:
        sys.setswitchinterval(interval)

    assert errors == []
    active_ids = [device.id for device in repository.devices]
    assert len(active_ids) == len(set(active_ids))
    assert set(active_ids) == expected_ids
    assert repository.archived == ()
    assert repository.get(last_id).status == "Run 299"
