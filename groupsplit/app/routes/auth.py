"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"data": {...}, "warnings": []}

No business logic here. No DB queries. No bare SQL.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

The access token is returned in the body (for Bearer clients) and also set
as an HttpOnly session cookie (for the browser UI).

Endpoints (base url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  POST   /auth/logout    → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, Response, current_app, g, jsonify, request

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db
from groupsplit.app.middleware.auth_middleware import require_auth
from groupsplit.app.schemas.auth_schema import LoginSchema, RegisterSchema
from groupsplit.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


def _set_session_cookie(response: Response, token: str) -> Response:
    ttl = current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        secure=current_app.config.get("AUTH_COOKIE_SECURE", False),
        samesite="Lax",
        path="/",
    )
    return response


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account and profile; return a token. (No auth required.)"""
    data = RegisterSchema().load(request.get_json(force=True, silent=True) or {})
    with dependency_guard("register_user"):
        result = auth_service.register_user(
            email=data["email"],
            password=data["password"],
            username=data["username"],
            full_name=data["full_name"],
            session=db.session,
        )
        db.session.commit()
    response = jsonify({"data": result, "warnings": []})
    response.status_code = 201
    return _set_session_cookie(response, result["access_token"])


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate by email or username; return a token. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.login_user(
        identifier=data["identifier"],
        password=data["password"],
        session=db.session,
    )
    response = jsonify({"data": result, "warnings": []})
    return _set_session_cookie(response, result["access_token"])


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """POST /auth/logout — Clear the session cookie. Always succeeds."""
    response = jsonify({"data": {"message": "Logged out successfully."}, "warnings": []})
    response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"], path="/")
    return response


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return current user profile. (Auth required.)"""
    result = auth_service.get_current_user(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
