"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the GroupSplit API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Taxonomy (one subclass per HTTP outcome):
  ValidationError      400 — malformed or inconsistent input
  AuthenticationError  401 — no identity on the request
  AuthorizationError   403 — identity present, role insufficient
  NotFoundError        404 — referenced entity absent
  ConflictError        409 — uniqueness / state-transition conflicts
  DependencyError      500 — persistence or collaborator failure

Error codes are a contract with the UI. Messages are prose and may change.
Never conflate 401 (unauthenticated) with 403 (unauthorized).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AppError(Exception):

    http_status: int = 500

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int | None = None,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status if http_status is not None else type(self).http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        # `error` is always a plain string so every client can display it as-is.
        payload = {
            "error": self.message,
            "code":  self.code,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class ValidationError(AppError):
    http_status = 400


class AuthenticationError(AppError):
    http_status = 401


class AuthorizationError(AppError):
    http_status = 403


class NotFoundError(AppError):
    http_status = 404


class ConflictError(AppError):
    http_status = 409


class DependencyError(AppError):
    http_status = 500


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the `code` field of the response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    DUPLICATE_ASSIGNEE         = "DUPLICATE_ASSIGNEE"
    INVALID_ROLE               = "INVALID_ROLE"
    INVALID_SPLIT_MODE         = "INVALID_SPLIT_MODE"

    # ── Split Rules (400) ──────────────────────────────────────────────────
    TITLE_REQUIRED             = "TITLE_REQUIRED"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    ASSIGNMENTS_REQUIRED       = "ASSIGNMENTS_REQUIRED"
    SPLIT_SUM_MISMATCH         = "SPLIT_SUM_MISMATCH"
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    ASSIGNEE_NOT_MEMBER        = "ASSIGNEE_NOT_MEMBER"

    # ── Membership Rules (400) ─────────────────────────────────────────────
    MEMBER_HAS_OUTSTANDING_ASSIGNMENTS = "MEMBER_HAS_OUTSTANDING_ASSIGNMENTS"

    # ── Friendship Rules (400) ─────────────────────────────────────────────
    CANNOT_FRIEND_SELF         = "CANNOT_FRIEND_SELF"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL               = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME            = "DUPLICATE_USERNAME"
    ALREADY_MEMBER                = "ALREADY_MEMBER"
    INVITATION_ALREADY_ACCEPTED   = "INVITATION_ALREADY_ACCEPTED"
    ALREADY_FRIENDS               = "ALREADY_FRIENDS"
    FRIEND_REQUEST_EXISTS         = "FRIEND_REQUEST_EXISTS"
    FRIEND_REQUEST_RESOLVED       = "FRIEND_REQUEST_RESOLVED"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    MEMBER_NOT_FOUND           = "MEMBER_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"
    ASSIGNMENT_NOT_FOUND       = "ASSIGNMENT_NOT_FOUND"
    FRIEND_NOT_FOUND           = "FRIEND_NOT_FOUND"
    FRIEND_REQUEST_NOT_FOUND   = "FRIEND_REQUEST_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    DEPENDENCY_FAILURE         = "DEPENDENCY_FAILURE"
    INTERNAL_ERROR             = "INTERNAL_ERROR"


@contextmanager
def dependency_guard(operation: str, entity_id: int | None = None) -> Iterator[None]:
    """
    Converts persistence failures inside the block into DependencyError.

    The driver message is logged with the operation name and entity id; the
    caller only ever sees the generic message.

        with dependency_guard("replace_expense", expense_id):
            expense_service.replace_expense(...)
            db.session.commit()
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "Persistence failure during %s (entity_id=%s): %s",
            operation,
            entity_id,
            exc,
        )
        raise DependencyError(
            ErrorCode.DEPENDENCY_FAILURE,
            "The request could not be completed. Please try again later.",
        ) from exc
