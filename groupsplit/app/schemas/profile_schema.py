"""
schemas/profile_schema.py — Marshmallow schema for editing one's own profile.

Uniqueness of the username is checked in profile_service.py (DB lookup).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from groupsplit.app.schemas.auth_schema import FULL_NAME_RULES, USERNAME_RULES


class UpdateProfileSchema(Schema):
    """
    PATCH /profiles/me

    Every field is optional; at least one must be present. phone and
    avatar_url may be set to null to clear them.
    """

    full_name = fields.Str(validate=FULL_NAME_RULES)
    username = fields.Str(validate=USERNAME_RULES)
    phone = fields.Str(
        allow_none=True,
        validate=validate.Length(max=32, error="Phone must be at most 32 characters."),
    )
    avatar_url = fields.Url(
        allow_none=True,
        validate=validate.Length(max=512),
    )

    @validates_schema
    def validate_fields(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError(
                "Provide at least one of: full_name, username, phone, avatar_url."
            )
        if "full_name" in data and not data["full_name"].strip():
            raise ValidationError({"full_name": ["Full name must not be blank."]})
