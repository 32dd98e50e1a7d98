"""
schemas/expense_schema.py — Marshmallow schemas for expense and assignment endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, decimal precision (INVALID_AMOUNT_PRECISION)
      - INVALID_SPLIT_MODE (400) — split_mode is 'custom' or 'equal'
      - DUPLICATE_ASSIGNEE (400) — same user_id twice in the split
      - Request shape: `assigned` is custom-mode only, `member_ids` equal-mode only
  - services/validation_service.py (called by expense_service.py):
      - TITLE_REQUIRED, INVALID_AMOUNT, ASSIGNMENTS_REQUIRED, SPLIT_SUM_MISMATCH
  - services/expense_service.py:
      - PAYER_NOT_MEMBER / ASSIGNEE_NOT_MEMBER — require DB membership lookup
      - Role checks (FORBIDDEN, 403) — require DB membership lookup

Title, amount and the assignment list are deliberately optional here so that
an absent or empty value reaches validation_service and is reported with its
own split-rule code rather than a generic MISSING_FIELD.

`fulfilled` is never accepted on an expense body: unknown keys are dropped,
so a client cannot set the cached aggregate.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from groupsplit.app.errors import ErrorCode
from groupsplit.app.services.expense_service import SPLIT_MODE_CUSTOM, SPLIT_MODE_EQUAL
from groupsplit.app.services.validation_service import MAX_AMOUNT


# ── Shared monetary precision validator ───────────────────────────────────
#
# Input with more than 2 decimal places is REJECTED with
# INVALID_AMOUNT_PRECISION, never rounded or truncated. Amounts above
# MAX_AMOUNT are INVALID_AMOUNT. Sign of the total is not checked here: a
# non-positive total is INVALID_AMOUNT, raised by validation_service.
# ──────────────────────────────────────────────────────────────────────────

def _validate_precision(value: Decimal) -> None:
    """
    Decimal.as_tuple().exponent gives the scale as a negative integer:
      Decimal("10.123") → -3 → REJECT
      Decimal("10.12")  → -2 → accept
      Decimal("10")     →  0 → accept
    """
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_ceiling(value: Decimal) -> None:
    """Amounts above MAX_AMOUNT do not fit the Numeric(12, 2) columns."""
    if value > MAX_AMOUNT:
        raise ValidationError(ErrorCode.INVALID_AMOUNT)


def _validate_total(value: Decimal) -> None:
    _validate_ceiling(value)
    _validate_precision(value)


def _validate_share(value: Decimal) -> None:
    if value < Decimal("0"):
        raise ValidationError("Assigned amounts cannot be negative.")
    _validate_ceiling(value)
    _validate_precision(value)


def _has_duplicates(values: list) -> bool:
    return len(values) != len(set(values))


# ── Sub-schema: one entry in the `assigned` array ─────────────────────────

class AssignmentInputSchema(Schema):
    """
    One {user_id, amount} share. Group membership of user_id is checked in
    expense_service.py, not here.
    """

    class Meta:
        unknown = EXCLUDE

    user_id = fields.Int(
        required=True,
        strict=True,   # reject floats like 1.0
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_share,
    )


# ── Create / replace expense ──────────────────────────────────────────────

class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    Split mode behaviour:
      - split_mode='custom' (default) → client sends `assigned`, a list of
                                        {user_id, amount}. The sum rule is
                                        checked in validation_service.py.
      - split_mode='equal'            → client sends `member_ids`; the server
                                        divides the amount (remainder to payer).

    payer_id defaults to the caller when omitted.
    """

    class Meta:
        unknown = EXCLUDE

    title = fields.Str(
        load_default=None,
        validate=validate.Length(max=255, error="Title must be at most 255 characters."),
    )

    amount = fields.Decimal(
        load_default=None,
        validate=_validate_total,
        error_messages={
            "invalid": ErrorCode.INVALID_AMOUNT,
            "special": ErrorCode.INVALID_AMOUNT,
        },
    )

    payer_id = fields.Int(
        load_default=None,
        strict=True,
        validate=validate.Range(min=1, error="payer_id must be a positive integer."),
    )

    currency = fields.Str(
        load_default=None,
        validate=validate.Regexp(r"^[A-Z]{3}$", error="currency must be a 3-letter ISO code."),
    )

    note = fields.Str(load_default=None, allow_none=True)

    occurred_at = fields.AwareDateTime(load_default=None, allow_none=True)

    split_mode = fields.Str(
        load_default=SPLIT_MODE_CUSTOM,
        validate=validate.OneOf(
            [SPLIT_MODE_CUSTOM, SPLIT_MODE_EQUAL],
            error=ErrorCode.INVALID_SPLIT_MODE,
        ),
    )

    assigned = fields.List(
        fields.Nested(AssignmentInputSchema),
        load_default=None,
    )

    member_ids = fields.List(
        fields.Int(strict=True, validate=validate.Range(min=1)),
        load_default=None,
    )

    @validates_schema
    def validate_split_shape(self, data: dict, **kwargs) -> None:
        """
        1. `assigned` is only meaningful in custom mode, `member_ids` only in
           equal mode. Sending the other one is a request-shape error.
        2. DUPLICATE_ASSIGNEE: a user_id appears twice in the split.
        """
        split_mode = data.get("split_mode", SPLIT_MODE_CUSTOM)
        assigned = data.get("assigned")
        member_ids = data.get("member_ids")

        if split_mode == SPLIT_MODE_EQUAL:
            if assigned is not None:
                raise ValidationError(
                    {"assigned": ["Do not send assigned amounts when split_mode is 'equal'."]}
                )
            if member_ids is not None and _has_duplicates(member_ids):
                raise ValidationError({"member_ids": [ErrorCode.DUPLICATE_ASSIGNEE]})
            return

        if member_ids is not None:
            raise ValidationError(
                {"member_ids": ["member_ids is only used when split_mode is 'equal'."]}
            )

        if assigned and _has_duplicates([a["user_id"] for a in assigned]):
            raise ValidationError({"assigned": [ErrorCode.DUPLICATE_ASSIGNEE]})


class ReplaceExpenseSchema(CreateExpenseSchema):
    """
    PUT /expenses/:id

    Same body as create. The whole split is replaced, so title, amount and
    the assignments are always re-sent. Omitted payer_id keeps the current
    payer.
    """


# ── Toggle an assignment ───────────────────────────────────────────────────

class ToggleAssignmentSchema(Schema):
    """
    PATCH /assignments/:id

    Only JSON booleans are accepted; strings such as "true" or "yes" are rejected.
    """

    fulfilled = fields.Bool(
        required=True,
        truthy={True},
        falsy={False},
    )
