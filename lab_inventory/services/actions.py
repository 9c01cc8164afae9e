from __future__ import annotations

from typing import Any

from ..core.security import ActionKind, PendingAction
from ..crud.devices import DeviceRepository
from ..schemas.device import Device


def run_pending_action(repository: DeviceRepository, action: PendingAction) -> dict[str, Any]:
    """Execute an authorized action and describe what happened."""

    if action.kind is ActionKind.UPDATE_DEVICE:
        device = Device.model_validate({**(action.payload or {}), "id": action.device_id})
        applied = repository.update(device)
        return {"status": "updated" if applied else "ignored", "device_id": action.device_id}
    if action.kind is ActionKind.ARCHIVE_DEVICE:
        archived = repository.archive(action.device_id)
        return {"status": "archived" if archived else "ignored", "device_id": action.device_id}
    raise ValueError(f"Unsupported action: {action.kind}")
