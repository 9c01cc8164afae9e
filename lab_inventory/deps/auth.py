from __future__ import annotations

from fastapi import Depends, Request

from ..core.config import AppSettings
from ..core.errors import AuthorizationRequired
from ..core.security import AuthGate, PendingAction
from ..crud.devices import DeviceRepository
from ..db.store import KeyValueStore
from ..services.actions import run_pending_action
from .state import get_app_settings, get_store


def get_auth_gate(
    request: Request,
    store: KeyValueStore = Depends(get_store),
    settings: AppSettings = Depends(get_app_settings),
) -> AuthGate:
    """Bind the shared secret to this caller's session cookie."""

    return AuthGate(
        store,
        default_secret=settings.ADMIN_DEFAULT_PASSWORD,
        recovery_answer=settings.ADMIN_RECOVERY_ANSWER,
        session=request.session,
    )


def run_gated(gate: AuthGate, repository: DeviceRepository, action: PendingAction) -> dict:
    """Run ``action`` now if the session is authorized, otherwise park it and answer 401."""

    challenge = gate.request_authorization(action)
    if challenge is not None:
        raise AuthorizationRequired(challenge)
    return run_pending_action(repository, action)
