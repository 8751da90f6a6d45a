from __future__ import annotations

from flask import Blueprint, jsonify

from app.tracker.db import db_session
from app.tracker.errors import Forbidden
from app.tracker.modules.projects.service import (
    create_project,
    delete_project,
    get_project_or_404,
    invite_member,
    list_projects_for_user,
    remove_member,
    serialize_project,
    update_project,
)
from app.tracker.modules.users.service import get_user_or_404
from app.tracker.rbac import (
    current_user,
    ensure_project_member,
    project_creation_allowed,
    require_admin,
    require_auth,
)
from app.tracker.utils import json_body, parse_id

bp = Blueprint("projects", __name__)


# ---------- List / Create ----------
@bp.get("")
@require_auth
def projects_list():
    s = db_session()
    projects = list_projects_for_user(s, current_user())
    return jsonify([serialize_project(p) for p in projects])


@bp.post("")
@require_auth
def projects_create():
    s = db_session()
    u = current_user()
    if not project_creation_allowed(u):
        raise Forbidden("Only admins can create projects")
    project = create_project(s, json_body(), u)
    s.commit()
    return jsonify(serialize_project(project)), 201


# ---------- Detail ----------
@bp.get("/<project_id>")
@require_auth
def project_detail(project_id: str):
    s = db_session()
    project = get_project_or_404(s, parse_id(project_id, "Project"))
    ensure_project_member(project, current_user(), "view")
    return jsonify(serialize_project(project))


@bp.put("/<project_id>")
@require_auth
def project_update(project_id: str):
    s = db_session()
    u = current_user()
    project = get_project_or_404(s, parse_id(project_id, "Project"))
    ensure_project_member(project, u, "update")
    update_project(s, project, json_body(), u)
    s.commit()
    return jsonify(serialize_project(project))


@bp.delete("/<project_id>")
@require_auth
def project_delete(project_id: str):
    s = db_session()
    u = current_user()
    project = get_project_or_404(s, parse_id(project_id, "Project"))
    ensure_project_member(project, u, "delete")
    delete_project(s, project, u)
    s.commit()
    return jsonify({"message": "Project removed"})


# ---------- Team ----------
@bp.post("/<project_id>/invite")
@require_auth
def project_invite(project_id: str):
    s = db_session()
    u = current_user()
    project = get_project_or_404(s, parse_id(project_id, "Project"))
    ensure_project_member(project, u, "invite members to")
    invite_member(s, project, json_body().get("email"), u)
    s.commit()
    return jsonify(serialize_project(project))


@bp.delete("/<project_id>/members/<member_id>")
@require_admin
def project_remove_member(project_id: str, member_id: str):
    s = db_session()
    project = get_project_or_404(s, parse_id(project_id, "Project"))
    member = get_user_or_404(s, parse_id(member_id, "User"))
    remove_member(s, project, member, current_user())
    s.commit()
    return jsonify(serialize_project(project))
