from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.tracker.db import db_session
from app.tracker.errors import ValidationError
from app.tracker.modules.comments.service import (
    add_comment,
    delete_comment,
    edit_comment,
    get_comment_or_404,
    list_comments,
    serialize_comment,
)
from app.tracker.modules.tickets.service import get_ticket_or_404
from app.tracker.rbac import current_user, ensure_comment_author, ensure_project_member, require_auth
from app.tracker.utils import json_body, parse_id

bp = Blueprint("comments", __name__)


def _viewable_ticket(s, raw_ticket_id):
    if raw_ticket_id is None or raw_ticket_id == "":
        raise ValidationError("Ticket ID is required")
    ticket = get_ticket_or_404(s, parse_id(raw_ticket_id, "Ticket"))
    ensure_project_member(ticket.project, current_user(), "comment on tickets in")
    return ticket


@bp.get("")
@require_auth
def comments_list():
    s = db_session()
    ticket = _viewable_ticket(s, (request.args.get("ticketId") or "").strip())
    return jsonify([serialize_comment(c) for c in list_comments(s, ticket)])


@bp.post("")
@require_auth
def comments_create():
    s = db_session()
    payload = json_body()
    ticket = _viewable_ticket(s, payload.get("ticketId"))
    comment = add_comment(s, ticket, payload.get("text"), current_user())
    s.commit()
    return jsonify(serialize_comment(comment)), 201


@bp.put("/<comment_id>")
@require_auth
def comment_update(comment_id: str):
    s = db_session()
    u = current_user()
    comment = get_comment_or_404(s, parse_id(comment_id, "Comment"))
    ensure_comment_author(comment, u)
    edit_comment(s, comment, json_body().get("text"), u)
    s.commit()
    return jsonify(serialize_comment(comment))


@bp.delete("/<comment_id>")
@require_auth
def comment_delete(comment_id: str):
    s = db_session()
    u = current_user()
    comment = get_comment_or_404(s, parse_id(comment_id, "Comment"))
    ensure_comment_author(comment, u)
    delete_comment(s, comment, u)
    s.commit()
    return jsonify({"message": "Comment removed"})
