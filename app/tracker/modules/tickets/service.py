from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select

from app.tracker.audit import record_event
from app.tracker.constants import UNASSIGNED, TicketPriority, TicketStatus
from app.tracker.errors import NotFound, ValidationError
from app.tracker.modules.tickets.models import Ticket
from app.tracker.modules.users.service import get_user_or_404, user_summary
from app.tracker.utils import clean_str, isoformat, parse_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.tracker.models import User
    from app.tracker.modules.projects.models import Project

_UNSET = object()


@dataclass(frozen=True)
class TicketFilter:
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    # None: no assignee filter; UNASSIGNED: only tickets without one; int: that user.
    assignee: int | str | None = None
    keyword: str | None = None


def serialize_ticket(ticket: Ticket) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "title": ticket.title,
        "description": ticket.description,
        "priority": ticket.priority.value,
        "status": ticket.status.value,
        "assignee": user_summary(ticket.assignee),
        "projectId": ticket.project_id,
        "createdAt": isoformat(ticket.created_at),
    }


def _parse_status(raw: Any) -> TicketStatus:
    status = TicketStatus.parse(raw)
    if status is None:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(st.value for st in TicketStatus)}")
    return status


def _parse_priority(raw: Any) -> TicketPriority:
    priority = TicketPriority.parse(raw)
    if priority is None:
        raise ValidationError(f"Invalid priority. Must be one of: {', '.join(p.value for p in TicketPriority)}")
    return priority


def _is_unassign(raw: Any) -> bool:
    return raw is None or raw == "" or raw == UNASSIGNED


def _like_pattern(keyword: str) -> str:
    # Substring match; % and _ typed by the user are matched literally.
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def parse_ticket_filter(args) -> TicketFilter:
    """Build a TicketFilter from query-string arguments (empty values are ignored)."""
    status = (args.get("status") or "").strip()
    priority = (args.get("priority") or "").strip()
    assignee = (args.get("assignee") or "").strip()
    keyword = (args.get("keyword") or "").strip()

    assignee_value: int | str | None = None
    if assignee == UNASSIGNED:
        assignee_value = UNASSIGNED
    elif assignee:
        assignee_value = parse_id(assignee, "User")

    return TicketFilter(
        status=_parse_status(status) if status else None,
        priority=_parse_priority(priority) if priority else None,
        assignee=assignee_value,
        keyword=keyword or None,
    )


def list_tickets(s: "Session", project: "Project", flt: TicketFilter) -> list[Ticket]:
    stmt = select(Ticket).where(Ticket.project_id == project.id)
    if flt.status is not None:
        stmt = stmt.where(Ticket.status == flt.status)
    if flt.priority is not None:
        stmt = stmt.where(Ticket.priority == flt.priority)
    if flt.assignee == UNASSIGNED:
        stmt = stmt.where(Ticket.assignee_id.is_(None))
    elif flt.assignee is not None:
        stmt = stmt.where(Ticket.assignee_id == flt.assignee)
    if flt.keyword:
        like = _like_pattern(flt.keyword)
        stmt = stmt.where(or_(Ticket.title.ilike(like, escape="\\"), Ticket.description.ilike(like, escape="\\")))
    stmt = stmt.order_by(Ticket.created_at.asc(), Ticket.id.asc())
    return list(s.execute(stmt).scalars())


def get_ticket_or_404(s: "Session", ticket_id: int) -> Ticket:
    ticket = s.get(Ticket, ticket_id)
    if ticket is None:
        raise NotFound("Ticket not found")
    return ticket


def resolve_assignee(s: "Session", project: "Project", raw: Any) -> "User":
    """Load the user named by `raw` and check they are on the project's team."""
    user = get_user_or_404(s, parse_id(raw, "User"))
    if not project.has_member(user):
        raise ValidationError("Assigned user is not a member of this project")
    return user


def create_ticket(s: "Session", project: "Project", payload: dict, user: "User") -> Ticket:
    title = clean_str(payload.get("title"))
    if not title:
        raise ValidationError("Title is required")

    raw_priority = payload.get("priority")
    raw_status = payload.get("status")
    raw_assignee = payload.get("assignee")
    assignee = None if _is_unassign(raw_assignee) else resolve_assignee(s, project, raw_assignee)

    ticket = Ticket(
        title=title,
        description=clean_str(payload.get("description")) or None,
        priority=_parse_priority(raw_priority) if raw_priority else TicketPriority.LOW,
        status=_parse_status(raw_status) if raw_status else TicketStatus.TODO,
        project_id=project.id,
        assignee=assignee,
    )
    s.add(ticket)
    s.flush()

    record_event(
        s,
        actor=user,
        action="ticket.create",
        entity_type="Ticket",
        entity_id=str(ticket.id),
        metadata={"project_id": project.id, "title": ticket.title, "assignee_id": ticket.assignee_id},
    )
    return ticket


def update_ticket(s: "Session", ticket: Ticket, payload: dict, user: "User") -> Ticket:
    """
    Apply the provided, non-empty fields. Status moves are unconstrained: any
    status may follow any other. `assignee: null` clears the assignee.
    """
    changes: dict[str, dict[str, Any]] = {}

    new_title = clean_str(payload.get("title"))
    if new_title and new_title != ticket.title:
        changes["title"] = {"old": ticket.title, "new": new_title}
        ticket.title = new_title

    new_description = clean_str(payload.get("description"))
    if new_description and new_description != ticket.description:
        changes["description"] = {"old": ticket.description, "new": new_description}
        ticket.description = new_description

    if payload.get("priority"):
        new_priority = _parse_priority(payload["priority"])
        if new_priority is not ticket.priority:
            changes["priority"] = {"old": ticket.priority.value, "new": new_priority.value}
            ticket.priority = new_priority

    if payload.get("status"):
        new_status = _parse_status(payload["status"])
        if new_status is not ticket.status:
            changes["status"] = {"old": ticket.status.value, "new": new_status.value}
            ticket.status = new_status

    raw_assignee = payload.get("assignee", _UNSET)
    if raw_assignee is not _UNSET:
        new_assignee = None if _is_unassign(raw_assignee) else resolve_assignee(s, ticket.project, raw_assignee)
        new_id = new_assignee.id if new_assignee else None
        if new_id != ticket.assignee_id:
            changes["assignee_id"] = {"old": ticket.assignee_id, "new": new_id}
            ticket.assignee = new_assignee

    record_event(
        s,
        actor=user,
        action="ticket.edit",
        entity_type="Ticket",
        entity_id=str(ticket.id),
        metadata={"project_id": ticket.project_id, "changes": changes},
    )
    return ticket


def assign_ticket(s: "Session", ticket: Ticket, raw_user_id: Any, user: "User") -> Ticket:
    if raw_user_id is None or raw_user_id == "":
        raise ValidationError("userId is required")
    assignee = resolve_assignee(s, ticket.project, raw_user_id)
    old = ticket.assignee_id
    ticket.assignee = assignee
    record_event(
        s,
        actor=user,
        action="ticket.assign",
        entity_type="Ticket",
        entity_id=str(ticket.id),
        metadata={"project_id": ticket.project_id, "old": old, "new": assignee.id},
    )
    return ticket


def delete_ticket(s: "Session", ticket: Ticket, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="ticket.delete",
        entity_type="Ticket",
        entity_id=str(ticket.id),
        metadata={"project_id": ticket.project_id, "title": ticket.title},
    )
    s.delete(ticket)
