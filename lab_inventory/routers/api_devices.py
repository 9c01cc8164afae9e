"""Device inventory endpoints.

WHAT: Lists, creates, edits, archives and restores lab devices, plus the
per-device notes, change history and spreadsheet import/export.
WHEN: Mounted under ``/api/v1/devices`` by the application factory.
HOW: Handlers stay thin. Filtering lives in ``services.queries``, state changes
in ``crud.devices`` and edits/archives go through the admin gate first.

File: lab_inventory/routers/api_devices.py
"""


from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from ..core.config import AppSettings
from ..core.device_fields import ALL, resolve_field
from ..core.security import ActionKind, AuthGate, PendingAction
from ..crud.devices import DeviceRepository
from ..deps.auth import get_auth_gate, run_gated
from ..deps.state import get_app_settings, get_repository
from ..schemas.auth import ActionResult
from ..schemas.device import (
    ArchivedDeviceOut,
    ChangeLogEntry,
    Device,
    DeviceDraft,
    DeviceFacets,
    DeviceOut,
    DeviceReplace,
    ImportSummary,
    MutationStatus,
    Note,
    NoteCreate,
)
from ..services.queries import (
    DeviceFilter,
    SortDirection,
    SortState,
    classify_calibration,
    filter_devices,
    filter_notes,
    status_options,
    unit_options,
)
from ..services.spreadsheet import (
    XLSX_MEDIA_TYPE,
    SpreadsheetError,
    export_archived,
    export_devices,
    read_rows,
    rows_to_drafts,
)

router = APIRouter(prefix="/api/v1/devices", tags=["devices"])


def device_filter(
    unit: str = Query(default=ALL),
    q: str = Query(default=""),
    status_: str = Query(default=ALL, alias="status"),
    active: str = Query(default=ALL),
    cal_from: Optional[date] = Query(default=None),
    cal_to: Optional[date] = Query(default=None),
) -> DeviceFilter:
    return DeviceFilter(
        unit=unit,
        search=q,
        status=status_,
        active=active,
        calibration_from=cal_from,
        calibration_to=cal_to,
    )


def sort_state(
    sort: Optional[str] = Query(default=None),
    direction: SortDirection = Query(default=SortDirection.ASC),
) -> SortState | None:
    if not sort:
        return None
    field = resolve_field(sort)
    if field is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown sort field: {sort}")
    return SortState(field=field, direction=direction)


def _local_today(settings: AppSettings) -> date:
    return datetime.now(ZoneInfo(settings.TZ)).date()


def _device_out(device: Device, settings: AppSettings, today: date | None = None) -> DeviceOut:
    calibration = classify_calibration(
        device.calibration_date,
        today=today or _local_today(settings),
        due_soon_days=settings.CALIBRATION_DUE_SOON_DAYS,
    )
    return DeviceOut(**device.model_dump(), calibration_status=calibration.value)


def _xlsx_response(payload: bytes, filename: str) -> Response:
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("", response_model=list[DeviceOut])
def api_list(
    criteria: DeviceFilter = Depends(device_filter),
    sort: SortState | None = Depends(sort_state),
    repository: DeviceRepository = Depends(get_repository),
    settings: AppSettings = Depends(get_app_settings),
):
    rows = filter_devices(repository.devices, criteria, sort)
    today = _local_today(settings)
    return [_device_out(device, settings, today) for device in rows]


@router.get("/facets", response_model=DeviceFacets)
def api_facets(
    criteria: DeviceFilter = Depends(device_filter),
    repository: DeviceRepository = Depends(get_repository),
):
    devices = repository.devices
    return DeviceFacets(
        units=unit_options(devices),
        statuses=status_options(devices),
        active_filter_count=criteria.active_filter_count,
    )


@router.get("/archived", response_model=list[ArchivedDeviceOut])
def api_list_archived(repository: DeviceRepository = Depends(get_repository)):
    return [ArchivedDeviceOut(**device.model_dump()) for device in repository.archived]


@router.get("/export")
def api_export(
    criteria: DeviceFilter = Depends(device_filter),
    sort: SortState | None = Depends(sort_state),
    repository: DeviceRepository = Depends(get_repository),
):
    rows = filter_devices(repository.devices, criteria, sort)
    return _xlsx_response(export_devices(rows), "envanter.xlsx")


@router.get("/archived/export")
def api_export_archived(repository: DeviceRepository = Depends(get_repository)):
    return _xlsx_response(export_archived(repository.archived), "arsiv.xlsx")


@router.post("/import", response_model=ImportSummary, status_code=status.HTTP_201_CREATED)
async def api_import(
    file: UploadFile = File(...),
    repository: DeviceRepository = Depends(get_repository),
):
    data = await file.read()
    try:
        rows = await run_in_threadpool(read_rows, data)
    except SpreadsheetError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    created = repository.bulk_import(rows_to_drafts(rows))
    return ImportSummary(imported=len(created), device_ids=[device.id for device in created])


@router.post("/archived/{device_id}/restore", response_model=MutationStatus)
def api_restore(device_id: int, repository: DeviceRepository = Depends(get_repository)):
    restored = repository.restore(device_id)
    return MutationStatus(status="restored" if restored else "ignored", device_id=device_id)


@router.post("", response_model=DeviceOut, status_code=status.HTTP_201_CREATED)
def api_create(
    payload: DeviceDraft,
    repository: DeviceRepository = Depends(get_repository),
    settings: AppSettings = Depends(get_app_settings),
):
    return _device_out(repository.create(payload), settings)


@router.get("/{device_id}", response_model=DeviceOut)
def api_get(
    device_id: int,
    repository: DeviceRepository = Depends(get_repository),
    settings: AppSettings = Depends(get_app_settings),
):
    device = repository.get(device_id)
    if not device:
        raise HTTPException(404, "Not found")
    return _device_out(device, settings)


@router.put("/{device_id}", response_model=ActionResult)
def api_update(
    device_id: int,
    payload: DeviceReplace,
    gate: AuthGate = Depends(get_auth_gate),
    repository: DeviceRepository = Depends(get_repository),
):
    action = PendingAction(
        kind=ActionKind.UPDATE_DEVICE,
        device_id=device_id,
        payload=payload.model_dump(mode="json"),
    )
    return ActionResult(**run_gated(gate, repository, action))


@router.post("/{device_id}/archive", response_model=ActionResult)
def api_archive(
    device_id: int,
    gate: AuthGate = Depends(get_auth_gate),
    repository: DeviceRepository = Depends(get_repository),
):
    action = PendingAction(kind=ActionKind.ARCHIVE_DEVICE, device_id=device_id)
    return ActionResult(**run_gated(gate, repository, action))


@router.get("/{device_id}/changes", response_model=list[ChangeLogEntry])
def api_changes(device_id: int, repository: DeviceRepository = Depends(get_repository)):
    return list(repository.change_log_for(device_id))


# ---------- notes ----------
@router.get("/{device_id}/notes", response_model=list[Note])
def api_list_notes(
    device_id: int,
    q: str = Query(default=""),
    repository: DeviceRepository = Depends(get_repository),
):
    return filter_notes(repository.notes_for(device_id), q)


@router.post("/{device_id}/notes", response_model=Note, status_code=status.HTTP_201_CREATED)
def api_add_note(
    device_id: int,
    payload: NoteCreate,
    repository: DeviceRepository = Depends(get_repository),
):
    return repository.add_note(device_id, payload.text)


@router.delete("/{device_id}/notes/{note_id}", response_model=MutationStatus)
def api_delete_note(
    device_id: int,
    note_id: int,
    repository: DeviceRepository = Depends(get_repository),
):
    removed = repository.delete_note(device_id, note_id)
    return MutationStatus(status="deleted" if removed else "ignored", device_id=device_id)
