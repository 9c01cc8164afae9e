from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.security import AuthGate
from ..crud.devices import DeviceRepository
from ..deps.auth import get_auth_gate
from ..deps.state import get_repository
from ..schemas.auth import (
    ActionResult,
    AuthStatus,
    ChallengeResolution,
    LoginRequest,
    PasswordChangeRequest,
    RecoveryRequest,
)
from ..services.actions import run_pending_action

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/login", response_model=AuthStatus, summary="Unlock admin actions for this session")
async def login(payload: LoginRequest, gate: AuthGate = Depends(get_auth_gate)):
    if not gate.validate(payload.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")
    return AuthStatus(authorized=True)


@router.post("/logout", response_model=AuthStatus)
async def logout(gate: AuthGate = Depends(get_auth_gate)):
    gate.revoke()
    return AuthStatus(authorized=False)


@router.get("/status", response_model=AuthStatus)
async def auth_status(gate: AuthGate = Depends(get_auth_gate)):
    return AuthStatus(authorized=gate.is_authorized)


@router.post("/password", response_model=AuthStatus, summary="Change the shared admin password")
async def change_password(payload: PasswordChangeRequest, gate: AuthGate = Depends(get_auth_gate)):
    if not gate.change_secret(payload.old_password, payload.new_password):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Current password is incorrect")
    return AuthStatus(authorized=gate.is_authorized)


@router.post("/recover", response_model=AuthStatus, summary="Reset the admin password to its default")
async def recover_password(payload: RecoveryRequest, gate: AuthGate = Depends(get_auth_gate)):
    if not gate.recover(payload.answer):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Recovery answer is incorrect")
    return AuthStatus(authorized=gate.is_authorized)


@router.get("/challenges/{challenge_id}", response_model=ActionResult)
async def get_challenge(challenge_id: str, gate: AuthGate = Depends(get_auth_gate)):
    challenge = gate.pending(challenge_id)
    if challenge is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown challenge")
    action = challenge.action
    return ActionResult(status="pending", device_id=action.device_id, action=action.model_dump(mode="json"))


@router.post("/challenges/{challenge_id}", response_model=ActionResult, summary="Answer a parked admin challenge")
def resolve_challenge(
    challenge_id: str,
    payload: ChallengeResolution,
    gate: AuthGate = Depends(get_auth_gate),
    repository: DeviceRepository = Depends(get_repository),
):
    outcome = gate.resolve(challenge_id, payload.password)
    if not outcome.granted:
        if outcome.reason == "unknown_challenge":
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown challenge")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")
    result = run_pending_action(repository, outcome.action)
    return ActionResult(**result, action=outcome.action.model_dump(mode="json"))
