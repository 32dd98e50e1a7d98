"""
schemas/friend_schema.py — Marshmallow schemas for friend endpoints.

Self-requests, unknown users and duplicate or resolved requests are checked in
services/friend_service.py, since they all need the database.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

FRIEND_REQUEST_ACCEPT = "ACCEPT"
FRIEND_REQUEST_REJECT = "REJECT"


class SendFriendRequestSchema(Schema):
    """POST /friends/requests"""

    user_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )


class RespondFriendRequestSchema(Schema):
    """PATCH /friends/requests/:id — {"action": "ACCEPT" | "REJECT"}"""

    action = fields.Str(
        required=True,
        validate=validate.OneOf(
            [FRIEND_REQUEST_ACCEPT, FRIEND_REQUEST_REJECT],
            error="action must be ACCEPT or REJECT.",
        ),
    )
