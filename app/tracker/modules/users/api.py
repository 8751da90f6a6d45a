from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.tracker.db import db_session
from app.tracker.modules.users.service import change_role, get_user_or_404, list_users, serialize_user
from app.tracker.rbac import current_user, require_admin
from app.tracker.utils import json_body, parse_id

bp = Blueprint("users", __name__)


@bp.get("")
@require_admin
def users_list():
    s = db_session()
    return jsonify([serialize_user(u) for u in list_users(s)])


@bp.put("/<user_id>/role")
@require_admin
def user_role_update(user_id: str):
    s = db_session()
    actor = current_user()
    target = get_user_or_404(s, parse_id(user_id, "User"))
    change_role(s, target, json_body().get("role"), actor)
    s.commit()
    current_app.logger.info("Role change user_id=%s role=%s by user_id=%s", target.id, target.role.value, actor.id)
    return jsonify(serialize_user(target))
