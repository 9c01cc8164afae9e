import json
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from lab_inventory.core.config import AppSettings
from lab_inventory.core.logging import JsonLogFormatter, RequestContextFilter, configure_logging
from lab_inventory.db.store import JsonFileStore, SqlKeyValueStore, build_store
from lab_inventory.middlewares import principal_ctx_var, request_id_ctx_var


def test_allowed_origins_accepts_comma_separated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://lab.local, http://localhost:5173")

    settings = AppSettings(DATA_DIR=tmp_path)

    assert settings.ALLOWED_ORIGINS == ["http://lab.local", "http://localhost:5173"]


def test_database_url_defaults_under_data_dir(tmp_path):
    settings = AppSettings(DATA_DIR=tmp_path, DB_URL="")
    assert settings.database_url == f"sqlite:///{tmp_path / 'lab_inventory.db'}"


def test_build_store_picks_backend(tmp_path):
    assert isinstance(build_store(AppSettings(DATA_DIR=tmp_path, STORAGE_BACKEND="json")), JsonFileStore)
    sql = build_store(AppSettings(DATA_DIR=tmp_path, STORAGE_BACKEND="sql", DB_URL="sqlite://"))
    assert isinstance(sql, SqlKeyValueStore)
    sql.set("theme", "dark")
    assert sql.get("theme") == "dark"


def test_corrupt_json_file_reads_as_missing(tmp_path):
    (tmp_path / "devices.json").write_text("{not json", encoding="utf-8")
    assert JsonFileStore(tmp_path).get("devices") is None


def test_json_formatter_includes_context_and_extra():
    record = logging.LogRecord("lab_inventory.test", logging.INFO, __file__, 1, "device.archived", None, None)
    record.extra_data = {"device_id": 3}
    token = request_id_ctx_var.set("req-123")
    try:
        payload = json.loads(JsonLogFormatter().format(record))
    finally:
        request_id_ctx_var.reset(token)

    assert payload["message"] == "device.archived"
    assert payload["request_id"] == "req-123"
    assert payload["device_id"] == 3


def test_context_filter_tags_record_and_extra_cannot_override_core_keys():
    record = logging.LogRecord("lab_inventory.test", logging.WARNING, __file__, 1, "auth.recovery_rejected", None, None)
    record.extra_data = {"message": "spoofed", "attempt": 2}
    token = principal_ctx_var.set("viewer")
    try:
        assert RequestContextFilter().filter(record) is True
    finally:
        principal_ctx_var.reset(token)

    payload = json.loads(JsonLogFormatter().format(record))

    assert record.principal == "viewer"
    assert payload["principal"] == "viewer"
    assert "request_id" not in payload
    assert payload["message"] == "auth.recovery_rejected"
    assert payload["attempt"] == 2


def test_configure_logging_installs_json_handler_and_quiets_httpx():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("debug")

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonLogFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
