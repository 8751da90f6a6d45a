from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.tracker.audit import record_event
from app.tracker.errors import NotFound, ValidationError
from app.tracker.models import utcnow
from app.tracker.modules.comments.models import Comment
from app.tracker.modules.users.service import user_summary
from app.tracker.utils import clean_str, isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.tracker.models import User
    from app.tracker.modules.tickets.models import Ticket

MAX_COMMENT_LENGTH = 10_000


def serialize_comment(comment: Comment) -> dict[str, Any]:
    return {
        "id": comment.id,
        "ticketId": comment.ticket_id,
        "text": comment.text,
        "createdAt": isoformat(comment.created_at),
        "updatedAt": isoformat(comment.updated_at),
        "user": user_summary(comment.user),
    }


def _clean_text(raw: Any) -> str:
    text = clean_str(raw)
    if not text:
        raise ValidationError("Comment text is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment text must be at most {MAX_COMMENT_LENGTH} characters")
    return text


def get_comment_or_404(s: "Session", comment_id: int) -> Comment:
    comment = s.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def list_comments(s: "Session", ticket: "Ticket") -> list[Comment]:
    stmt = (
        select(Comment)
        .where(Comment.ticket_id == ticket.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return list(s.execute(stmt).scalars())


def add_comment(s: "Session", ticket: "Ticket", raw_text: Any, user: "User") -> Comment:
    comment = Comment(ticket_id=ticket.id, user=user, text=_clean_text(raw_text))
    s.add(comment)
    s.flush()
    record_event(
        s,
        actor=user,
        action="comment.create",
        entity_type="Comment",
        entity_id=str(comment.id),
        metadata={"ticket_id": ticket.id},
    )
    return comment


def edit_comment(s: "Session", comment: Comment, raw_text: Any, user: "User") -> Comment:
    text = _clean_text(raw_text)
    if text != comment.text:
        comment.text = text
        comment.updated_at = utcnow()
        record_event(
            s,
            actor=user,
            action="comment.edit",
            entity_type="Comment",
            entity_id=str(comment.id),
            metadata={"ticket_id": comment.ticket_id},
        )
    return comment


def delete_comment(s: "Session", comment: Comment, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="comment.delete",
        entity_type="Comment",
        entity_id=str(comment.id),
        metadata={"ticket_id": comment.ticket_id},
    )
    s.delete(comment)
