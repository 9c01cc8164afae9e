from __future__ import annotations

from fastapi import Request

from ..core.config import AppSettings
from ..crud.devices import DeviceRepository
from ..db.store import KeyValueStore
from ..services.certificates import CertificateWorkbench


def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_repository(request: Request) -> DeviceRepository:
    return request.app.state.repository


def get_workbench(request: Request) -> CertificateWorkbench:
    return request.app.state.workbench
