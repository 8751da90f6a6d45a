from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.tracker.db import db_session
from app.tracker.errors import ValidationError
from app.tracker.modules.projects.service import get_project_or_404
from app.tracker.modules.tickets.service import (
    assign_ticket,
    create_ticket,
    delete_ticket,
    get_ticket_or_404,
    list_tickets,
    parse_ticket_filter,
    serialize_ticket,
    update_ticket,
)
from app.tracker.rbac import current_user, ensure_project_member, require_auth
from app.tracker.utils import json_body, parse_id

bp = Blueprint("tickets", __name__)


def _load_ticket(ticket_id: str, action: str):
    s = db_session()
    ticket = get_ticket_or_404(s, parse_id(ticket_id, "Ticket"))
    ensure_project_member(ticket.project, current_user(), action)
    return s, ticket


# ---------- List / Create ----------
@bp.get("")
@require_auth
def tickets_list():
    s = db_session()
    raw_project_id = (request.args.get("projectId") or "").strip()
    if not raw_project_id:
        raise ValidationError("Project ID is required")
    project = get_project_or_404(s, parse_id(raw_project_id, "Project"))
    ensure_project_member(project, current_user(), "view tickets in")

    tickets = list_tickets(s, project, parse_ticket_filter(request.args))
    return jsonify([serialize_ticket(t) for t in tickets])


@bp.post("")
@require_auth
def tickets_create():
    s = db_session()
    u = current_user()
    payload = json_body()
    raw_project_id = payload.get("projectId")
    if raw_project_id is None or raw_project_id == "":
        raise ValidationError("Project ID is required")
    project = get_project_or_404(s, parse_id(raw_project_id, "Project"))
    ensure_project_member(project, u, "create tickets in")

    ticket = create_ticket(s, project, payload, u)
    s.commit()
    return jsonify(serialize_ticket(ticket)), 201


# ---------- Detail ----------
@bp.get("/<ticket_id>")
@require_auth
def ticket_detail(ticket_id: str):
    _, ticket = _load_ticket(ticket_id, "view tickets in")
    return jsonify(serialize_ticket(ticket))


@bp.put("/<ticket_id>")
@require_auth
def ticket_update(ticket_id: str):
    s, ticket = _load_ticket(ticket_id, "update tickets in")
    update_ticket(s, ticket, json_body(), current_user())
    s.commit()
    return jsonify(serialize_ticket(ticket))


@bp.delete("/<ticket_id>")
@require_auth
def ticket_delete(ticket_id: str):
    s, ticket = _load_ticket(ticket_id, "delete tickets in")
    delete_ticket(s, ticket, current_user())
    s.commit()
    return jsonify({"message": "Ticket removed"})


@bp.put("/<ticket_id>/assign")
@require_auth
def ticket_assign(ticket_id: str):
    s, ticket = _load_ticket(ticket_id, "assign tickets in")
    assign_ticket(s, ticket, json_body().get("userId"), current_user())
    s.commit()
    return jsonify(serialize_ticket(ticket))
