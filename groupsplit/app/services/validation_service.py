"""
services/validation_service.py — Structural and numeric rules for an expense split.

Given {title, amount, assigned[]} this module checks, in order:
  TITLE_REQUIRED        — title is non-empty after trim
  INVALID_AMOUNT        — amount is a finite number greater than zero and at
                          most MAX_AMOUNT
  ASSIGNMENTS_REQUIRED  — assigned is a non-empty sequence of {user_id, amount}
  SPLIT_SUM_MISMATCH    — |sum(assigned.amount) - amount| <= SPLIT_TOLERANCE

Every failure is a ValidationError (400) whose code names the rule. Nothing is
written here, so a rejected split never leaves a trace in the database.

Shares are taken as authoritative: no re-rounding or re-normalisation happens
in validate_split(). Callers that divide a total evenly (the UI, or the
server-side "equal" split mode via compute_equal_shares) produce a rounding
remainder of a few cents; the tolerance exists to absorb exactly that.

Layer rules:
  - No Flask imports, no DB access. Pure functions over plain dicts and Decimal.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Iterable, Sequence

from groupsplit.app.errors import ErrorCode, ValidationError

# Fixed policy constant (absolute currency units). Not configurable per group
# or per currency.
SPLIT_TOLERANCE = Decimal("0.05")

# Largest value a Numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")

_CENT = Decimal("0.01")


def _as_decimal(value) -> Decimal | None:
    """Coerces ints, strings and Decimals to Decimal. Returns None if not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


def validate_title(title: str | None) -> str:
    """Returns the title unchanged, or raises TITLE_REQUIRED."""
    if title is None or not str(title).strip():
        raise ValidationError(
            ErrorCode.TITLE_REQUIRED,
            "Title is required.",
            field="title",
        )
    return title


def validate_amount(amount) -> Decimal:
    """Returns amount as a Decimal, or raises INVALID_AMOUNT."""
    value = _as_decimal(amount)
    if value is None or not value.is_finite() or value <= 0 or value > MAX_AMOUNT:
        raise ValidationError(
            ErrorCode.INVALID_AMOUNT,
            f"Amount must be a positive number no greater than {MAX_AMOUNT}.",
            field="amount",
        )
    return value


def split_total(assigned: Iterable[dict]) -> Decimal:
    """Sum of the share amounts, in Decimal."""
    return sum((_as_decimal(a["amount"]) or Decimal("0") for a in assigned), Decimal("0"))


def validate_split(title: str | None, amount, assigned: Sequence[dict] | None) -> list[dict]:
    """
    Validates a split request and returns the normalised assignment list.

    Args:
        title:    Expense title.
        amount:   Expense total (Decimal, int or numeric string).
        assigned: Ordered sequence of {"user_id": int, "amount": Decimal}.

    Returns:
        A new list of {"user_id", "amount"} dicts in the caller's order, each
        amount as Decimal exactly as supplied.

    Raises:
        ValidationError with code TITLE_REQUIRED, INVALID_AMOUNT,
        ASSIGNMENTS_REQUIRED or SPLIT_SUM_MISMATCH.
    """
    validate_title(title)
    total = validate_amount(amount)

    if not assigned:
        raise ValidationError(
            ErrorCode.ASSIGNMENTS_REQUIRED,
            "At least one member must be assigned to the expense.",
            field="assigned",
        )

    normalised: list[dict] = []
    for entry in assigned:
        share = _as_decimal(entry.get("amount"))
        if entry.get("user_id") is None or share is None or not share.is_finite():
            raise ValidationError(
                ErrorCode.ASSIGNMENTS_REQUIRED,
                "Each assignment needs a user_id and a numeric amount.",
                field="assigned",
            )
        normalised.append({"user_id": entry["user_id"], "amount": share})

    assigned_total = split_total(normalised)
    if abs(assigned_total - total) > SPLIT_TOLERANCE:
        raise ValidationError(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Assigned amounts ({assigned_total}) do not match the total ({total}). "
            f"Please recheck your split.",
            field="assigned",
        )

    return normalised


def compute_equal_shares(
        amount: Decimal,
        user_ids: Sequence[int],
        remainder_to: int | None = None,
) -> list[dict]:
    """
    Divides `amount` evenly among `user_ids`, rounded down to the cent.

    The leftover cent(s) go to `remainder_to` when that user is a participant
    (normally the payer), otherwise to the first participant, so the shares
    always add up to `amount` exactly.

        compute_equal_shares(Decimal("10.00"), [1, 2, 3])
        -> [{"user_id": 1, "amount": Decimal("3.34")},
            {"user_id": 2, "amount": Decimal("3.33")},
            {"user_id": 3, "amount": Decimal("3.33")}]
    """
    if not user_ids:
        raise ValidationError(
            ErrorCode.ASSIGNMENTS_REQUIRED,
            "At least one member must be selected for an equal split.",
            field="member_ids",
        )

    n = len(user_ids)
    base = (amount / Decimal(n)).quantize(_CENT, rounding=ROUND_DOWN)
    remainder = amount - (base * n)

    shares = [{"user_id": uid, "amount": base} for uid in user_ids]

    if remainder > Decimal("0"):
        target = next(
            (s for s in shares if s["user_id"] == remainder_to),
            shares[0],
        )
        target["amount"] += remainder

    return shares
