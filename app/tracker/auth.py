from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import Blueprint, current_app, g, jsonify, request

from app.tracker.audit import record_event
from app.tracker.db import db_session
from app.tracker.errors import RateLimited, Unauthenticated, ValidationError
from app.tracker.models import User
from app.tracker.modules.users.service import (
    delete_user,
    get_user_by_email,
    normalize_email,
    register_user,
    serialize_user,
)
from app.tracker.rbac import current_user, require_auth
from app.tracker.security import bearer_token, decode_token, issue_token, verify_password
from app.tracker.utils import json_body

bp = Blueprint("auth", __name__)


@dataclass
class RequestContext:
    """Per-request identity. Lives on `g.request_context` for the request's lifetime."""

    request_id: str
    user: User | None = None
    auth_error: str | None = None


def _login_attempts() -> dict[str, list[datetime]]:
    return current_app.extensions.setdefault("login_attempts", defaultdict(list))


def _check_rate_limit(ip: str) -> bool:
    window = current_app.config.get("LOGIN_RATE_WINDOW_SECONDS", 300)
    limit = current_app.config.get("LOGIN_RATE_LIMIT", 5)
    attempts = _login_attempts()
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=window)
    # Addresses with no attempts left in the window are dropped.
    for key in list(attempts):
        recent = [t for t in attempts[key] if t > cutoff]
        if recent:
            attempts[key] = recent
        else:
            del attempts[key]
    return len(attempts.get(ip, ())) >= limit


def _record_attempt(ip: str) -> None:
    _login_attempts()[ip].append(datetime.now(timezone.utc))


def _token_response(user: User, status: int = 200):
    token = issue_token(
        user.id,
        secret=current_app.config["JWT_SECRET"],
        expires_seconds=current_app.config["JWT_EXPIRES_SECONDS"],
    )
    return jsonify({"token": token, "user": serialize_user(user)}), status


def load_request_context() -> None:
    """
    Builds g.request_context from the bearer token, if any.
    A missing or bad token does not fail here; protected routes raise 401 via require_auth.
    """
    ctx = RequestContext(request_id=request.headers.get("X-Request-ID") or uuid.uuid4().hex)
    g.request_context = ctx

    header = request.headers.get("Authorization")
    if not header:
        return
    token = bearer_token(header)
    if token is None:
        ctx.auth_error = "No token, authorization denied"
        return
    user_id = decode_token(token, secret=current_app.config["JWT_SECRET"])
    if user_id is None:
        ctx.auth_error = "Token is not valid"
        return
    user = db_session().get(User, user_id)
    if user is None:
        current_app.logger.info("Token for missing user_id=%s rejected (request_id=%s)", user_id, ctx.request_id)
        ctx.auth_error = "Token is not valid"
        return
    ctx.user = user


@bp.post("/register")
def register():
    s = db_session()
    user = register_user(s, json_body())
    s.commit()
    current_app.logger.info("Registered user_id=%s", user.id)
    return _token_response(user, 201)


@bp.post("/login")
def login():
    payload = json_body()
    email = normalize_email(payload.get("email"))
    password = payload.get("password")
    ip = request.remote_addr or "unknown"

    if not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required.")

    if _check_rate_limit(ip):
        current_app.logger.warning("Login rate limit hit ip=%s", ip)
        raise RateLimited("Too many login attempts. Please wait and try again.")

    _record_attempt(ip)

    s = db_session()
    user = get_user_by_email(s, email)
    if user is None or not verify_password(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.warning("Failed login email=%s ip=%s", email, ip)
        raise Unauthenticated("Invalid credentials")

    _login_attempts().pop(ip, None)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return _token_response(user)


@bp.get("/user")
@require_auth
def get_current_user():
    return jsonify(serialize_user(current_user()))


@bp.delete("/user")
@require_auth
def delete_current_user():
    s = db_session()
    user = current_user()
    delete_user(s, user)
    s.commit()
    g.request_context.user = None
    current_app.logger.info("Deleted account user_id=%s", user.id)
    return jsonify({"message": "User deleted"})
