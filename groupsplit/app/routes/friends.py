"""
routes/friends.py — Friend and friend request route handlers.

Endpoints (base url_prefix=/api/v1/friends):
  GET    /friends                   → 200  caller's friends, ordered by full name
  DELETE /friends/:uid              → 200  end a friendship (both sides)
  POST   /friends/requests          → 201  send a friend request
  GET    /friends/requests          → 200  pending requests addressed to the caller
  PATCH  /friends/requests/:id      → 200  ACCEPT or REJECT a pending request
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db
from groupsplit.app.middleware.auth_middleware import require_auth
from groupsplit.app.schemas.friend_schema import (
    FRIEND_REQUEST_ACCEPT,
    RespondFriendRequestSchema,
    SendFriendRequestSchema,
)
from groupsplit.app.services import friend_service

friends_bp = Blueprint("friends", __name__)


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


@friends_bp.route("", methods=["GET"])
@require_auth
def list_friends():
    result = friend_service.list_friends(user_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@friends_bp.route("/<int:friend_id>", methods=["DELETE"])
@require_auth
def remove_friend(friend_id: int):
    with dependency_guard("remove_friend", friend_id):
        friend_service.remove_friend(
            caller_id=g.user_id,
            friend_id=friend_id,
            session=db.session,
        )
        db.session.commit()
    return jsonify({
        "data": {"removed": True, "user_id": friend_id},
        "warnings": [],
    }), 200


@friends_bp.route("/requests", methods=["POST"])
@require_auth
def send_friend_request():
    data = SendFriendRequestSchema().load(_body())
    with dependency_guard("send_friend_request", data["user_id"]):
        result = friend_service.send_friend_request(
            caller_id=g.user_id,
            target_user_id=data["user_id"],
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@friends_bp.route("/requests", methods=["GET"])
@require_auth
def list_incoming_requests():
    result = friend_service.list_incoming_requests(caller_id=g.user_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@friends_bp.route("/requests/<int:request_id>", methods=["PATCH"])
@require_auth
def respond_to_request(request_id: int):
    """PATCH /friends/requests/:id — Only the recipient may answer."""
    data = RespondFriendRequestSchema().load(_body())
    with dependency_guard("respond_to_friend_request", request_id):
        result = friend_service.respond_to_request(
            request_id=request_id,
            caller_id=g.user_id,
            accept=data["action"] == FRIEND_REQUEST_ACCEPT,
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
