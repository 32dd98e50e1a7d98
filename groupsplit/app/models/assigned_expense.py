"""
models/assigned_expense.py — AssignedExpense table definition.

One member's owed share of one expense, with its own `fulfilled` flag.

Key design points:
  - `amount` uses Numeric(12, 2) — never Float.
  - expense_id is ON DELETE CASCADE — assignments are owned by their expense.
  - user_id is ON DELETE RESTRICT — cannot delete a user who owes a share.
  - UNIQUE(expense_id, user_id): a member appears at most once per expense
    (also rejected as DUPLICATE_ASSIGNEE by the request schema).

The sum rule (sum of shares within 0.05 of the expense amount) is checked at
write time by validation_service, not by a database constraint.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupsplit.app.extensions import db


class AssignedExpense(db.Model):
    __tablename__ = "assigned_expenses"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_assigned_expenses_expense_user"),
        CheckConstraint("amount >= 0", name="ck_assigned_expenses_amount_nonnegative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    fulfilled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="assignments",
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<AssignedExpense id={self.id} "
            f"expense_id={self.expense_id} "
            f"user_id={self.user_id} "
            f"amount={self.amount} "
            f"fulfilled={self.fulfilled}>"
        )
