"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim),
    the INVALID_ROLE rule for role changes.
  - services/group_service.py (via authorization_service):
      - FORBIDDEN (caller's role in the group)
      - USER_NOT_FOUND / MEMBER_NOT_FOUND / GROUP_NOT_FOUND (DB lookups)
      - ALREADY_MEMBER (membership existence check)
      - MEMBER_HAS_OUTSTANDING_ASSIGNMENTS (removal guard)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from groupsplit.app.errors import ErrorCode
from groupsplit.app.models.group_member import Role


# validate.Length(min=1) alone allows whitespace-only strings like "   ".
# This validator strips first, mirroring CHECK(LENGTH(TRIM(name)) > 0).

def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_GROUP_NAME = [
    validate.Length(
        min=1,
        max=100,
        error="Group name must be between 1 and 100 characters.",
    ),
    _validate_non_empty_after_trim,
]


def _user_id() -> fields.Int:
    return fields.Int(
        strict=True,  # reject floats like 1.0 — integers only
        validate=validate.Range(min=1, error="user ids must be positive integers."),
    )


class CreateGroupSchema(Schema):
    """
    POST /groups

    The creator becomes ADMIN; `member_ids` are invited as MEMBER.
    """

    name = fields.Str(required=True, validate=_GROUP_NAME)

    # When absent the route falls back to DEFAULT_CURRENCY.
    base_currency = fields.Str(
        load_default=None,
        validate=validate.Regexp(
            r"^[A-Z]{3}$",
            error="base_currency must be a 3-letter ISO code.",
        ),
    )

    member_ids = fields.List(_user_id(), load_default=list)


class UpdateGroupSchema(Schema):
    """PATCH /groups/:id — rename and/or (de)activate. At least one field."""

    name = fields.Str(validate=_GROUP_NAME)
    active = fields.Bool(truthy={True}, falsy={False})

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("Provide at least one of: name, active.")


class AddMembersSchema(Schema):
    """POST /groups/:id/members"""

    member_ids = fields.List(
        _user_id(),
        required=True,
        validate=validate.Length(min=1, error="member_ids must not be empty."),
    )


class ChangeRoleSchema(Schema):
    """
    PATCH /groups/:id/members/:user_id

    Only MODERATOR and MEMBER can be granted; ADMIN (and anything else) is
    INVALID_ROLE (400).
    """

    role = fields.Enum(
        Role,
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_ROLE},
    )

    @validates_schema
    def validate_assignable(self, data: dict, **kwargs) -> None:
        if data.get("role") == Role.ADMIN:
            raise ValidationError({"role": [ErrorCode.INVALID_ROLE]})
