"""
middleware/auth_middleware.py — JWT authentication decorator.

The @require_auth decorator:
  1. Reads the token from the Authorization header ("Bearer <token>") or,
     when no header is sent, from the session cookie (AUTH_COOKIE_NAME)
  2. Decodes and verifies the JWT via auth_service.decode_access_token
  3. Attaches user_id (int) to flask.g for the duration of the request
  4. Raises the appropriate 401 error if any step fails

Strict responsibility boundary:
  - This middleware establishes identity and attaches user_id to flask.g ONLY.
  - It does NOT perform business authorization (group membership, roles).
    That belongs in authorization_service. Middleware = authentication (401).
    Service = authorization (403).
  - Services receive user_id as a plain integer argument, with no knowledge
    of JWT, cookies or headers.

Error codes:
  TOKEN_MISSING  (401) — neither header nor cookie present
  TOKEN_INVALID  (401) — malformed header, invalid signature, or bad payload
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past
  → 403 FORBIDDEN is never raised here; it is raised by service functions.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request

from groupsplit.app.errors import AuthenticationError, ErrorCode
from groupsplit.app.services import auth_service


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces authentication.

    Attaches the authenticated user's ID to flask.g.user_id.
    Raises AuthenticationError for all auth failures — the global error
    handler converts these to the correct JSON response. Routes never catch
    AppError.

    Usage:
        @bp.route("/groups")
        @require_auth
        def list_groups():
            user_id = g.user_id  # always an int when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _read_token() -> str:
    """Returns the raw token from the header (preferred) or the session cookie."""
    auth_header = request.headers.get("Authorization", "")

    if auth_header:
        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise AuthenticationError(
                ErrorCode.TOKEN_INVALID,
                "Authorization header must be in the format: Bearer <token>.",
            )
        return parts[1]

    cookie_token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
    if cookie_token:
        return cookie_token

    raise AuthenticationError(
        ErrorCode.TOKEN_MISSING,
        "Authentication required. Log in or provide a Bearer token.",
    )


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and sets flask.g.user_id.

    Separated from the decorator wrapper so it can be called directly in
    tests without wrapping a real view function.
    """
    g.user_id = auth_service.decode_access_token(_read_token())
