from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

NOT_AVAILABLE = "N/A"
MAX_KEY_MEASUREMENTS = 3


class CertificateDeviceInfo(BaseModel):
    serial_number: str = NOT_AVAILABLE
    model: str = NOT_AVAILABLE
    equipment_type: str = NOT_AVAILABLE


class CalibrationResults(BaseModel):
    status: Literal["PASS", "FAIL", "INDETERMINATE"] = "INDETERMINATE"
    key_measurements: list[str] = Field(default_factory=list)
    reasoning: str = NOT_AVAILABLE

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("key_measurements")
    @classmethod
    def keep_first_measurements(cls, value: list[str]) -> list[str]:
        return value[:MAX_KEY_MEASUREMENTS]


class CertificateAnalysis(BaseModel):
    summary: str = NOT_AVAILABLE
    device_info: CertificateDeviceInfo = Field(default_factory=CertificateDeviceInfo)
    calibration_results: CalibrationResults = Field(default_factory=CalibrationResults)


class CertificateFileOut(BaseModel):
    name: str
    size: int


class WorkbenchOut(BaseModel):
    files: list[CertificateFileOut]
    selected: Optional[str] = None
    text: str = ""
    analysis: Optional[CertificateAnalysis] = None


class AnalysisOut(BaseModel):
    certificate: str
    applied: bool
    analysis: CertificateAnalysis
