from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from app.tracker.audit import record_event
from app.tracker.constants import DEFAULT_ROLE, MIN_PASSWORD_LENGTH, Role
from app.tracker.errors import NotFound, ValidationError
from app.tracker.models import User
from app.tracker.security import hash_password
from app.tracker.utils import clean_str, isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def user_summary(user: User | None) -> dict[str, Any] | None:
    """Short form embedded in projects, tickets and comments."""
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def serialize_user(user: User) -> dict[str, Any]:
    # Never includes the password hash.
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "createdAt": isoformat(user.created_at),
    }


def normalize_email(email: Any) -> str:
    return clean_str(email).lower()


def validate_registration(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload.get("name")):
        errors.append("Name is required.")
    email = normalize_email(payload.get("email"))
    if not email or "@" not in email or email.startswith("@") or email.endswith("@"):
        errors.append("A valid email is required.")
    password = payload.get("password")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return errors


def get_user_by_email(s: "Session", email: str) -> User | None:
    return s.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()


def get_user_or_404(s: "Session", user_id: int) -> User:
    user = s.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def register_user(s: "Session", payload: dict) -> User:
    errors = validate_registration(payload)
    if errors:
        raise ValidationError(" ".join(errors))
    email = normalize_email(payload.get("email"))
    if get_user_by_email(s, email) is not None:
        raise ValidationError("User already exists")

    user = User(
        name=clean_str(payload.get("name")),
        email=email,
        password_hash=hash_password(payload["password"]),
        role=DEFAULT_ROLE,
    )
    s.add(user)
    try:
        s.flush()
    except IntegrityError:
        # Same email registered concurrently; the unique index decides.
        s.rollback()
        raise ValidationError("User already exists") from None
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    return user


def list_users(s: "Session") -> list[User]:
    return list(s.execute(select(User).order_by(User.id.asc())).scalars())


def change_role(s: "Session", target: User, raw_role: Any, actor: User) -> User:
    role = Role.parse(raw_role)
    if role is None:
        raise ValidationError("Invalid role provided")
    if target.id == actor.id and role is not target.role:
        raise ValidationError("Admins cannot change their own role")
    old = target.role
    target.role = role
    record_event(
        s,
        actor=actor,
        action="user.role_change",
        entity_type="User",
        entity_id=str(target.id),
        metadata={"old": old.value, "new": role.value},
    )
    return target


def delete_user(s: "Session", user: User) -> None:
    """
    Delete an account and everything that would otherwise point at it:
    comments are removed, ticket assignments cleared, memberships dropped.
    """
    from app.tracker.modules.comments.models import Comment
    from app.tracker.modules.projects.models import ProjectMember
    from app.tracker.modules.tickets.models import Ticket

    s.execute(update(Ticket).where(Ticket.assignee_id == user.id).values(assignee_id=None))
    s.execute(delete(Comment).where(Comment.user_id == user.id))
    s.execute(delete(ProjectMember).where(ProjectMember.user_id == user.id))
    record_event(
        s,
        actor=None,
        action="auth.account_delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    s.delete(user)
