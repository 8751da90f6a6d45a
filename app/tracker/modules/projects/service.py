from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from app.tracker.audit import record_event
from app.tracker.errors import NotFound, ValidationError
from app.tracker.modules.projects.models import Project, ProjectMember
from app.tracker.modules.users.service import get_user_by_email, normalize_email, user_summary
from app.tracker.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.tracker.models import User


def serialize_project(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "teamMembers": [user_summary(m) for m in project.team_members],
    }


def get_project_or_404(s: "Session", project_id: int) -> Project:
    project = s.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


def list_projects_for_user(s: "Session", user: "User") -> list[Project]:
    stmt = (
        select(Project)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user.id)
        .order_by(Project.id.asc())
    )
    return list(s.execute(stmt).scalars())


def create_project(s: "Session", payload: dict, user: "User") -> Project:
    """Create a project; the creator becomes its first team member."""
    title = clean_str(payload.get("title"))
    if not title:
        raise ValidationError("Title is required")
    project = Project(
        title=title,
        description=clean_str(payload.get("description")) or None,
    )
    project.team_members.append(user)
    s.add(project)
    s.flush()

    record_event(
        s,
        actor=user,
        action="project.create",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"title": project.title},
    )
    return project


def update_project(s: "Session", project: Project, payload: dict, user: "User") -> Project:
    changes = {}

    new_title = clean_str(payload.get("title"))
    if new_title and new_title != project.title:
        changes["title"] = {"old": project.title, "new": new_title}
        project.title = new_title

    new_description = clean_str(payload.get("description"))
    if new_description and new_description != project.description:
        changes["description"] = {"old": project.description, "new": new_description}
        project.description = new_description

    record_event(
        s,
        actor=user,
        action="project.edit",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"changes": changes},
    )
    return project


def delete_project(s: "Session", project: Project, user: "User") -> None:
    """Delete a project along with its tickets and their comments."""
    record_event(
        s,
        actor=user,
        action="project.delete",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"title": project.title, "tickets": len(project.tickets)},
    )
    s.delete(project)


def invite_member(s: "Session", project: Project, raw_email: Any, user: "User") -> Project:
    email = normalize_email(raw_email)
    if not email:
        raise ValidationError("User email is required")
    invitee = get_user_by_email(s, email)
    if invitee is None:
        raise NotFound("User with that email not found")
    if project.has_member(invitee):
        raise ValidationError("User is already a team member")

    project.team_members.append(invitee)
    record_event(
        s,
        actor=user,
        action="project.invite",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"member_id": invitee.id, "email": invitee.email},
    )
    return project


def remove_member(s: "Session", project: Project, member: "User", user: "User") -> Project:
    """
    Drop a user from the team. Tickets in this project assigned to them become
    unassigned so no ticket points at a non-member.
    """
    from app.tracker.modules.tickets.models import Ticket

    if not project.has_member(member):
        raise NotFound("User is not a member of this project")

    project.team_members.remove(member)
    result = s.execute(
        update(Ticket)
        .where(Ticket.project_id == project.id, Ticket.assignee_id == member.id)
        .values(assignee_id=None)
    )
    record_event(
        s,
        actor=user,
        action="project.remove_member",
        entity_type="Project",
        entity_id=str(project.id),
        metadata={"member_id": member.id, "unassigned_tickets": result.rowcount},
    )
    return project
