from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g

from app.tracker.constants import Role
from app.tracker.errors import Forbidden, Unauthenticated
from app.tracker.models import User

logger = logging.getLogger(__name__)

# Privileges granted per role. Every Role member must have an entry.
ADMIN_ONLY = "admin"
ROLE_PRIVILEGES: dict[Role, frozenset[str]] = {
    Role.ADMIN: frozenset({ADMIN_ONLY}),
    Role.DEVELOPER: frozenset(),
    Role.SUBMITTER: frozenset(),
}
_missing = set(Role) - set(ROLE_PRIVILEGES)
if _missing:
    raise RuntimeError(f"ROLE_PRIVILEGES is missing roles: {sorted(r.value for r in _missing)}")


def user_is_admin(user: User | None) -> bool:
    if user is None:
        return False
    return ADMIN_ONLY in ROLE_PRIVILEGES[user.role]


def current_user() -> User:
    ctx = getattr(g, "request_context", None)
    if ctx is None or ctx.user is None:
        raise Unauthenticated("No token, authorization denied")
    return ctx.user


def ensure_admin(user: User) -> None:
    if not user_is_admin(user):
        logger.warning("Forbidden: admin required user_id=%s", user.id)
        raise Forbidden("Not authorized as an admin")


def ensure_project_member(project, user: User, action: str = "access") -> None:
    if not project.has_member(user):
        logger.warning("Forbidden: user_id=%s not on project_id=%s (%s)", user.id, project.id, action)
        raise Forbidden(f"User not authorized to {action} this project")


def ensure_comment_author(comment, user: User) -> None:
    if comment.user_id != user.id:
        logger.warning("Forbidden: user_id=%s is not author of comment_id=%s", user.id, comment.id)
        raise Forbidden("User not authorized")


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request with 401 unless a verified identity is attached."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        ctx = getattr(g, "request_context", None)
        if ctx is None or ctx.user is None:
            raise Unauthenticated(getattr(ctx, "auth_error", None) or "No token, authorization denied")
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    @require_auth
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        ensure_admin(current_user())
        return fn(*args, **kwargs)

    return wrapped


def project_creation_allowed(user: User) -> bool:
    if not current_app.config.get("PROJECT_CREATE_ADMIN_ONLY", True):
        return True
    return user_is_admin(user)
