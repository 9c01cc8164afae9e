"""Shared-secret admin gate.

The whole lab shares one admin password. A session becomes "authorized" once
it presents that password and stays so until logout; the flag lives in the
session mapping handed to the gate (the Starlette session cookie for HTTP
callers, a plain dict otherwise) and is never persisted with the inventory.

Privileged work is described as data (``PendingAction``) rather than a
callback. ``request_authorization`` either clears the action for immediate
use or parks it behind an ``AuthChallenge``; ``resolve`` checks the password
and, on success, hands the parked action back to the caller to run.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, MutableMapping, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, ValidationError

from ..db.store import ADMIN_PASSWORD_KEY, KeyValueStore

logger = logging.getLogger(__name__)

SESSION_FLAG = "admin_authorized"
PENDING_KEY = "pending_challenges"
MAX_PENDING_CHALLENGES = 5


class ActionKind(str, Enum):
    UPDATE_DEVICE = "update_device"
    ARCHIVE_DEVICE = "archive_device"


class PendingAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    device_id: int
    payload: Optional[dict[str, Any]] = None


class AuthChallenge(BaseModel):
    model_config = ConfigDict(frozen=True)

    challenge_id: str
    action: PendingAction


@dataclass(frozen=True)
class AuthOutcome:
    granted: bool
    action: PendingAction | None = None
    reason: str | None = None


def _same(candidate: str | None, expected: str) -> bool:
    return hmac.compare_digest((candidate or "").encode("utf-8"), expected.encode("utf-8"))


class AuthGate:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        default_secret: str,
        recovery_answer: str,
        session: MutableMapping[str, Any] | None = None,
    ) -> None:
        self._store = store
        self.default_secret = default_secret
        self._recovery_answer = recovery_answer
        self._session: MutableMapping[str, Any] = session if session is not None else {}

    @property
    def secret(self) -> str:
        stored = self._store.get(ADMIN_PASSWORD_KEY)
        return stored if isinstance(stored, str) and stored else self.default_secret

    @property
    def is_authorized(self) -> bool:
        return bool(self._session.get(SESSION_FLAG))

    def validate(self, candidate: str | None) -> bool:
        if not _same(candidate, self.secret):
            logger.info("auth.validate_failed")
            return False
        self._session[SESSION_FLAG] = True
        return True

    def revoke(self) -> None:
        self._session.pop(SESSION_FLAG, None)
        self._session.pop(PENDING_KEY, None)

    def change_secret(self, old_candidate: str | None, new_secret: str) -> bool:
        if not _same(old_candidate, self.secret):
            logger.info("auth.change_secret_rejected")
            return False
        self._store.set(ADMIN_PASSWORD_KEY, new_secret)
        logger.info("auth.secret_changed")
        return True

    def recover(self, answer_candidate: str | None) -> bool:
        if (answer_candidate or "").casefold() != self._recovery_answer.casefold():
            logger.info("auth.recovery_rejected")
            return False
        self._store.set(ADMIN_PASSWORD_KEY, self.default_secret)
        logger.warning("auth.secret_reset_to_default")
        return True

    # ---------- two-phase gate ----------
    def request_authorization(self, action: PendingAction) -> AuthChallenge | None:
        """Return ``None`` when ``action`` may run now, else a challenge to resolve."""

        if self.is_authorized:
            return None
        challenge = AuthChallenge(challenge_id=uuid4().hex, action=action)
        pending = dict(self._session.get(PENDING_KEY) or {})
        pending[challenge.challenge_id] = action.model_dump(mode="json")
        while len(pending) > MAX_PENDING_CHALLENGES:
            pending.pop(next(iter(pending)))
        self._session[PENDING_KEY] = pending
        return challenge

    def pending(self, challenge_id: str) -> AuthChallenge | None:
        raw = (self._session.get(PENDING_KEY) or {}).get(challenge_id)
        if raw is None:
            return None
        try:
            action = PendingAction.model_validate(raw)
        except ValidationError:
            return None
        return AuthChallenge(challenge_id=challenge_id, action=action)

    def resolve(self, challenge: AuthChallenge | str, credential: str | None) -> AuthOutcome:
        challenge_id = challenge if isinstance(challenge, str) else challenge.challenge_id
        parked = self.pending(challenge_id)
        if parked is None:
            return AuthOutcome(granted=False, reason="unknown_challenge")
        if not self.validate(credential):
            return AuthOutcome(granted=False, reason="invalid_credential")
        pending = dict(self._session.get(PENDING_KEY) or {})
        pending.pop(challenge_id, None)
        self._session[PENDING_KEY] = pending
        return AuthOutcome(granted=True, action=parked.action)
