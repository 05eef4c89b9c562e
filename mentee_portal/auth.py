from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from .schemas import User

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    LOADING = "loading"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


@dataclass(frozen=True)
class StoredSession:
    token: str
    user: User


class AuthProvider(Protocol):
    def load(self) -> Optional[StoredSession]:
        ...

    def save(self, session: StoredSession) -> None:
        ...

    def clear(self) -> None:
        ...


@dataclass
class TokenFileAuthProvider:
    """Keeps the bearer token and user profile in a local JSON file."""

    path: Path

    def load(self) -> Optional[StoredSession]:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            token = raw.get("token")
            user = User.model_validate(raw.get("user") or {})
        except (ValueError, AttributeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None
        if not token:
            return None
        return StoredSession(token=token, user=user)

    def save(self, session: StoredSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"token": session.token, "user": session.user.model_dump()}
        self.path.write_text(json.dumps(payload), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class AuthSession:
    """Current identity as seen by one dashboard.

    Status stays ``loading`` until ``restore`` has asked the provider, so a
    session that is still being established is never mistaken for a missing one.
    """

    def __init__(self, provider: AuthProvider) -> None:
        self.provider = provider
        self.status = SessionStatus.LOADING
        self.user: Optional[User] = None
        self._token: Optional[str] = None

    @property
    def credential(self) -> Optional[str]:
        return self._token

    @property
    def confirmed_absent(self) -> bool:
        return self.status is SessionStatus.SIGNED_OUT

    def restore(self) -> SessionStatus:
        stored = self.provider.load()
        if stored is None:
            self._set_signed_out()
        else:
            self._set_signed_in(stored)
        return self.status

    def sign_in(self, token: str, user: User) -> None:
        stored = StoredSession(token=token, user=user)
        self.provider.save(stored)
        self._set_signed_in(stored)
        logger.info("Signed in as %s", user.name or user.email or "unknown user")

    def sign_out(self) -> None:
        self.provider.clear()
        self._set_signed_out()
        logger.info("Signed out")

    def _set_signed_in(self, stored: StoredSession) -> None:
        self._token = stored.token
        self.user = stored.user
        self.status = SessionStatus.SIGNED_IN

    def _set_signed_out(self) -> None:
        self._token = None
        self.user = None
        self.status = SessionStatus.SIGNED_OUT
