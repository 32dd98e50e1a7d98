"""
routes/groups.py — Group and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups                        → 201  create group (caller is ADMIN)
  GET    /groups                        → 200  list caller's groups
  GET    /groups/:id                    → 200  get group + members
  PATCH  /groups/:id                    → 200  rename / (de)activate (ADMIN)
  POST   /groups/:id/members            → 201  invite members (ADMIN)
  PATCH  /groups/:id/members/:uid       → 200  change role (ADMIN)
  DELETE /groups/:id/members/:uid       → 200  remove member (ADMIN, nothing owed)
  POST   /groups/:id/accept             → 200  accept own invitation
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db
from groupsplit.app.middleware.auth_middleware import require_auth
from groupsplit.app.schemas.group_schema import (
    AddMembersSchema,
    ChangeRoleSchema,
    CreateGroupSchema,
    UpdateGroupSchema,
)
from groupsplit.app.services import group_service

groups_bp = Blueprint("groups", __name__)


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


@groups_bp.route("", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a new group. Caller becomes ADMIN; member_ids are invited."""
    data = CreateGroupSchema().load(_body())
    with dependency_guard("create_group"):
        result = group_service.create_group(
            name=data["name"],
            owner_id=g.user_id,
            session=db.session,
            base_currency=data["base_currency"] or current_app.config["DEFAULT_CURRENCY"],
            member_ids=data["member_ids"],
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("", methods=["GET"])
@require_auth
def list_groups():
    """GET /groups — List all groups the authenticated user belongs to."""
    result = group_service.list_groups(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    """GET /groups/:id — Get group details with member list. Caller must be member."""
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["PATCH"])
@require_auth
def update_group(group_id: int):
    data = UpdateGroupSchema().load(_body())
    with dependency_guard("update_group", group_id):
        result = group_service.update_group(
            group_id=group_id,
            caller_id=g.user_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_members(group_id: int):
    """POST /groups/:id/members — Invite users to the group. ADMIN only."""
    data = AddMembersSchema().load(_body())
    with dependency_guard("add_members", group_id):
        result = group_service.add_members(
            group_id=group_id,
            caller_id=g.user_id,
            member_ids=data["member_ids"],
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["PATCH"])
@require_auth
def change_role(group_id: int, target_uid: int):
    """PATCH /groups/:id/members/:uid — Set role to MODERATOR or MEMBER. ADMIN only."""
    data = ChangeRoleSchema().load(_body())
    with dependency_guard("change_role", group_id):
        result = group_service.change_role(
            group_id=group_id,
            caller_id=g.user_id,
            target_user_id=target_uid,
            new_role=data["role"],
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, target_uid: int):
    """DELETE /groups/:id/members/:uid — Remove a member who owes nothing in the group. ADMIN only."""
    with dependency_guard("remove_member", group_id):
        group_service.remove_member(
            group_id=group_id,
            caller_id=g.user_id,
            target_user_id=target_uid,
            session=db.session,
        )
        db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "group_id": group_id,
            "user_id": target_uid,
        },
        "warnings": [],
    }), 200


@groups_bp.route("/<int:group_id>/accept", methods=["POST"])
@require_auth
def accept_invitation(group_id: int):
    with dependency_guard("accept_invitation", group_id):
        result = group_service.accept_invitation(
            group_id=group_id,
            caller_id=g.user_id,
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
