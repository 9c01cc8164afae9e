from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    password: str

    model_config = {
        "json_schema_extra": {
            "example": {"password": "admin123"}
        },
    }


class PasswordChangeRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=1)


class RecoveryRequest(BaseModel):
    answer: str


class ChallengeResolution(BaseModel):
    password: str


class AuthStatus(BaseModel):
    authorized: bool


class ActionResult(BaseModel):
    status: str
    device_id: Optional[int] = None
    action: Optional[dict[str, Any]] = None
