from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.device_fields import (
    ACTIVE_LABEL,
    ACTIVE_YES,
    ARCHIVED_AT_LABEL,
    CALIBRATION_DATE_LABEL,
    CALIBRATION_PERIOD_LABEL,
    DEFAULT_STATUS,
    EQUIPMENT_LABEL,
    ID_LABEL,
    LAST_CALIBRATION_LABEL,
    MODEL_LABEL,
    SERIAL_NUMBER_LABEL,
    STATUS_LABEL,
    UNIT_CODE_LABEL,
    UNIT_LABEL,
)

ActiveFlag = Literal["Yes", "No"]


class DeviceDraft(BaseModel):
    """User-editable device fields, accepted by attribute name or column label."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    equipment: str = Field(default="", alias=EQUIPMENT_LABEL)
    unit_code: str = Field(default="", alias=UNIT_CODE_LABEL)
    unit: str = Field(default="", alias=UNIT_LABEL)
    model: str = Field(default="", alias=MODEL_LABEL)
    serial_number: str = Field(default="", alias=SERIAL_NUMBER_LABEL)
    calibration_date: str = Field(default="", alias=CALIBRATION_DATE_LABEL)
    calibration_period_months: int = Field(default=12, alias=CALIBRATION_PERIOD_LABEL)
    last_calibration: str = Field(default="", alias=LAST_CALIBRATION_LABEL)
    status: str = Field(default=DEFAULT_STATUS, alias=STATUS_LABEL)


class DeviceUpdate(DeviceDraft):
    active: ActiveFlag = Field(default=ACTIVE_YES, alias=ACTIVE_LABEL)


class DeviceReplace(BaseModel):
    """Complete editable record for a PUT; every column must be sent."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    equipment: str = Field(alias=EQUIPMENT_LABEL)
    unit_code: str = Field(alias=UNIT_CODE_LABEL)
    unit: str = Field(alias=UNIT_LABEL)
    model: str = Field(alias=MODEL_LABEL)
    serial_number: str = Field(alias=SERIAL_NUMBER_LABEL)
    calibration_date: str = Field(alias=CALIBRATION_DATE_LABEL)
    calibration_period_months: int = Field(alias=CALIBRATION_PERIOD_LABEL)
    last_calibration: str = Field(alias=LAST_CALIBRATION_LABEL)
    status: str = Field(alias=STATUS_LABEL)
    active: ActiveFlag = Field(alias=ACTIVE_LABEL)


class Device(DeviceUpdate):
    id: int = Field(alias=ID_LABEL)


class ArchivedDevice(Device):
    archived_at: str = Field(alias=ARCHIVED_AT_LABEL)


class Note(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    created_at: str


class ChangeLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    previous: str
    new: str
    timestamp: str


class NoteCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Note text cannot be blank")
        return cleaned


class DeviceOut(BaseModel):
    id: int
    equipment: str
    unit_code: str
    unit: str
    model: str
    serial_number: str
    calibration_date: str
    calibration_period_months: int
    last_calibration: str
    status: str
    active: str
    calibration_status: str


class ArchivedDeviceOut(BaseModel):
    id: int
    equipment: str
    unit_code: str
    unit: str
    model: str
    serial_number: str
    calibration_date: str
    calibration_period_months: int
    last_calibration: str
    status: str
    active: str
    archived_at: str


class DeviceFacets(BaseModel):
    units: list[str]
    statuses: list[str]
    active_filter_count: int


class ImportSummary(BaseModel):
    imported: int
    device_ids: list[int] = Field(default_factory=list)


class MutationStatus(BaseModel):
    status: str
    device_id: Optional[int] = None
