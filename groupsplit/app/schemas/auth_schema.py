"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, regex patterns.
  - services/auth_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME checks
    (cross-entity: require a DB lookup — not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, post_load, validate, validates, validates_schema

USERNAME_RULES = [
    validate.Length(
        min=3,
        max=50,
        error="Username must be between 3 and 50 characters.",
    ),
    validate.Regexp(
        r"^[a-zA-Z0-9_]+$",
        error="Username may only contain letters, numbers, and underscores.",
    ),
]

FULL_NAME_RULES = validate.Length(
    min=1,
    max=100,
    error="Full name must be between 1 and 100 characters.",
)


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      email     : valid email format, max 255 chars
      password  : min 8 chars, at least one letter and one digit
      username  : 3–50 chars, alphanumeric + underscore only
      full_name : 1–100 chars, not blank

    Uniqueness of email and username is enforced in auth_service.py.
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    # Validated in @validates below to produce a clear message per missing rule.
    password = fields.Str(required=True, load_only=True)

    username = fields.Str(required=True, validate=USERNAME_RULES)

    full_name = fields.Str(required=True, validate=FULL_NAME_RULES)

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")

    @validates("full_name")
    def validate_full_name(self, value: str, **kwargs) -> None:
        if not value.strip():
            raise ValidationError("Full name must not be blank.")

    @post_load
    def normalise(self, data: dict, **kwargs) -> dict:
        data["email"] = data["email"].strip().lower()
        data["full_name"] = data["full_name"].strip()
        return data


class LoginSchema(Schema):
    """
    POST /auth/login

    Accepts either `email` or `username` together with `password`.
    Credential correctness is checked in auth_service.py (INVALID_CREDENTIALS, 401).
    """

    email = fields.Str()
    username = fields.Str()
    password = fields.Str(required=True, load_only=True)

    @validates_schema
    def validate_identifier(self, data: dict, **kwargs) -> None:
        if not (data.get("email") or data.get("username")):
            raise ValidationError(
                {"username": ["Missing data for required field."]}
            )

    @post_load
    def to_identifier(self, data: dict, **kwargs) -> dict:
        identifier = data.get("email") or data.get("username")
        if data.get("email"):
            identifier = identifier.strip().lower()
        return {"identifier": identifier, "password": data["password"]}
