"""
routes/profiles.py — Profile route handlers.

Endpoints (base url_prefix=/api/v1/profiles):
  GET    /profiles        → 200  all profiles, ordered by full name
  GET    /profiles/:id    → 200  one profile
  PATCH  /profiles/me     → 200  edit own profile
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db
from groupsplit.app.middleware.auth_middleware import require_auth
from groupsplit.app.schemas.profile_schema import UpdateProfileSchema
from groupsplit.app.services import profile_service

profiles_bp = Blueprint("profiles", __name__)


@profiles_bp.route("", methods=["GET"])
@require_auth
def list_profiles():
    result = profile_service.list_profiles(session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@profiles_bp.route("/<int:user_id>", methods=["GET"])
@require_auth
def get_profile(user_id: int):
    result = profile_service.get_profile(user_id=user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@profiles_bp.route("/me", methods=["PATCH"])
@require_auth
def update_own_profile():
    """PATCH /profiles/me — Update full_name, username, phone or avatar_url."""
    data = UpdateProfileSchema().load(request.get_json(force=True, silent=True) or {})
    with dependency_guard("update_own_profile", g.user_id):
        result = profile_service.update_own_profile(
            caller_id=g.user_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
