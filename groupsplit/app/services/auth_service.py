"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration (User + Profile in one transaction)
  - Credential validation (username or email + password)
  - JWT access token creation and decoding (HS256)
  - Password hashing (bcrypt) and verification

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - current_app.config is used ONLY to read the JWT secret, token TTL and
    bcrypt cost. JWT secrets must not be hardcoded or read from env directly
    in a way that bypasses Flask config validation.

Token design:
  - Access token: JWT, HS256, sub = user_id (str), TTL from
    JWT_ACCESS_TOKEN_EXPIRES. Sent as a Bearer header or an HttpOnly cookie.
  - There is no refresh token; logging out clears the cookie and the token
    simply expires.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS, default 12)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from groupsplit.app.errors import (
    AuthenticationError,
    ConflictError,
    ErrorCode,
    NotFoundError,
)
from groupsplit.app.models.profile import Profile
from groupsplit.app.models.user import User


# ── Private helpers ────────────────────────────────────────────────────────

def _create_access_token(user_id: int) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (user_id as str), iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    expiry = now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expiry,
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _build_user_dict(user: User) -> dict:
    """Serialises a User and its Profile to a plain dict. No business logic."""
    profile = user.profile
    return {
        "id": user.id,
        "email": user.email,
        "username": profile.username if profile else None,
        "full_name": profile.full_name if profile else None,
        "phone": profile.phone if profile else None,
        "avatar_url": profile.avatar_url if profile else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def decode_access_token(token: str) -> int:
    """
    Verifies a JWT and returns the user id in its `sub` claim.

    Raises:
      AuthenticationError(TOKEN_EXPIRED, 401)
      AuthenticationError(TOKEN_INVALID, 401) — bad signature, malformed, or no usable sub
    """
    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(
            ErrorCode.TOKEN_EXPIRED,
            "Your session has expired. Please log in again.",
        )
    except jwt.InvalidTokenError:
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The authentication token is invalid.",
        )

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The authentication token is invalid.",
        )


def register_user(
        email: str,
        password: str,
        username: str,
        full_name: str,
        session: Session,
) -> dict:
    """
    Creates a new user account with its profile and issues an access token.

    Raises:
      ConflictError(DUPLICATE_EMAIL, 409)    — email already registered
      ConflictError(DUPLICATE_USERNAME, 409) — username already taken

    Returns: {"user": {...}, "access_token": "..."}
    """
    # Cross-entity uniqueness checks (cannot be done in schema — require DB).
    existing_email = session.execute(
        select(User.id).where(User.email == email)
    ).scalar_one_or_none()
    if existing_email is not None:
        raise ConflictError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            field="email",
        )

    existing_username = session.execute(
        select(Profile.id).where(Profile.username == username)
    ).scalar_one_or_none()
    if existing_username is not None:
        raise ConflictError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            field="username",
        )

    user = User(email=email, password_hash=_hash_password(password))
    session.add(user)
    session.flush()  # populate user.id; the profile shares it

    session.add(Profile(id=user.id, username=username, full_name=full_name))
    session.flush()
    session.refresh(user)

    return {
        "user": _build_user_dict(user),
        "access_token": _create_access_token(user.id),
    }


def login_user(
        identifier: str,
        password: str,
        session: Session,
) -> dict:
    """
    Validates credentials and issues a new access token.

    `identifier` is matched against the email first, then the username.

    Raises:
      AuthenticationError(INVALID_CREDENTIALS, 401) — unknown user or wrong password.
      Uses the same error for both to avoid username enumeration.

    Returns: {"user": {...}, "access_token": "..."}
    """
    user = session.execute(
        select(User).where(User.email == identifier)
    ).scalar_one_or_none()
    if user is None:
        user = session.execute(
            select(User)
            .join(Profile, Profile.id == User.id)
            .where(Profile.username == identifier)
        ).scalar_one_or_none()

    # bcrypt.checkpw compares in constant time.
    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AuthenticationError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
        )

    return {
        "user": _build_user_dict(user),
        "access_token": _create_access_token(user.id),
    }


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Returns the account and profile of the currently authenticated user.

    Raises:
      NotFoundError(USER_NOT_FOUND, 404) — user_id from the token no longer exists.
    """
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
        )
    return _build_user_dict(user)
