from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import jwt

logger = logging.getLogger(__name__)


def token_expiry(token: str) -> datetime | None:
    """
    Read the `exp` claim without verifying the signature. Only the server can
    verify; the client uses this to drop a session it knows is stale.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


class SessionStore:
    """
    Client-side login state.

    Lifecycle: empty -> populate() on login -> clear() on logout, on expiry,
    or when the server rejects the token (401/403).
    """

    def __init__(self) -> None:
        self._token: str | None = None
        self._user: dict[str, Any] | None = None
        self._expires_at: datetime | None = None
        self.last_cleared_reason: str | None = None

    def populate(self, token: str, user: dict[str, Any]) -> None:
        self._token = token
        self._user = dict(user)
        self._expires_at = token_expiry(token)
        self.last_cleared_reason = None
        logger.debug("Session populated for user_id=%s", self._user.get("id"))

    def clear(self, reason: str = "logout") -> None:
        if self._token is not None:
            logger.info("Session cleared (%s)", reason)
        self._token = None
        self._user = None
        self._expires_at = None
        self.last_cleared_reason = reason

    def _expired(self, now: datetime | None = None) -> bool:
        if self._expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self._expires_at

    @property
    def token(self) -> str | None:
        if self._token is not None and self._expired():
            self.clear("expired")
        return self._token

    @property
    def user(self) -> dict[str, Any] | None:
        if self.token is None:
            return None
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def is_admin(self) -> bool:
        user = self.user
        return bool(user) and user.get("role") == "Admin"

    def update_user(self, user: dict[str, Any]) -> None:
        if self._token is not None:
            self._user = dict(user)
