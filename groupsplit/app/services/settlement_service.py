"""
services/settlement_service.py — Expense-level fulfilled status.

An expense is fulfilled if and only if it has at least one assignment and
every assignment is fulfilled. An expense with no assignments is never
fulfilled.

recompute() is the only writer of Expense.fulfilled. It must run after every
mutation of an assignment's `fulfilled` flag and after an expense's
assignments are created or replaced. It always re-reads the assignment rows
from the database (after the session has flushed pending writes) rather than
trusting objects already loaded in memory.

Concurrency:
  toggle_assignment() takes a row lock on the parent expense before touching
  the assignment (SELECT ... FOR UPDATE; ignored by SQLite). Two concurrent
  toggles on the same expense therefore run one after the other, and each
  recompute sees the full set of assignments as of its own write.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupsplit.app.errors import ErrorCode, NotFoundError
from groupsplit.app.models.assigned_expense import AssignedExpense
from groupsplit.app.models.expense import Expense
from groupsplit.app.services import authorization_service
from groupsplit.app.services.authorization_service import Action, AuthContext

logger = logging.getLogger(__name__)


def aggregate_fulfilled(flags: Iterable[bool]) -> bool:
    """True iff `flags` is non-empty and every flag is True."""
    flags = list(flags)
    return len(flags) > 0 and all(flags)


def _get_expense_or_404(expense_id: int, session: Session, lock: bool = False) -> Expense:
    stmt = select(Expense).where(Expense.id == expense_id)
    if lock:
        stmt = stmt.with_for_update()
    expense = session.execute(stmt).scalar_one_or_none()
    if expense is None:
        raise NotFoundError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
        )
    return expense


def _get_assignment_or_404(assignment_id: int, session: Session) -> AssignedExpense:
    assignment = session.get(AssignedExpense, assignment_id)
    if assignment is None:
        raise NotFoundError(
            ErrorCode.ASSIGNMENT_NOT_FOUND,
            f"Assignment {assignment_id} does not exist.",
        )
    return assignment


def recompute(expense_id: int, session: Session) -> bool:
    """
    Re-derives Expense.fulfilled from its assignment rows and persists it.

    Returns the recomputed value. Idempotent: running it twice with no
    intervening assignment change yields the same result and no change.
    """
    session.flush()

    flags = session.execute(
        select(AssignedExpense.fulfilled).where(AssignedExpense.expense_id == expense_id)
    ).scalars().all()
    fulfilled = aggregate_fulfilled(flags)

    expense = _get_expense_or_404(expense_id, session)
    if expense.fulfilled != fulfilled:
        logger.info(
            "Expense %s fulfilled %s -> %s (%d assignments)",
            expense_id,
            expense.fulfilled,
            fulfilled,
            len(flags),
        )
    expense.fulfilled = fulfilled
    session.flush()
    return fulfilled


def toggle_assignment(
        assignment_id: int,
        caller_id: int,
        fulfilled: bool,
        session: Session,
) -> tuple[AssignedExpense, bool]:
    """
    Sets one assignment's `fulfilled` flag and recomputes its expense.

    Authorization: the assignment's own user, or an ADMIN / MODERATOR of the
    expense's group (FORBIDDEN, 403 otherwise).

    Raises:
        NotFoundError(ASSIGNMENT_NOT_FOUND, 404)
        AuthorizationError(FORBIDDEN, 403)

    Returns:
        (updated assignment, recomputed expense-level fulfilled flag)
    """
    assignment = _get_assignment_or_404(assignment_id, session)
    expense = _get_expense_or_404(assignment.expense_id, session, lock=True)

    authorization_service.require(
        caller_id,
        Action.TOGGLE_ASSIGNMENT,
        AuthContext(group_id=expense.group_id, assignment_user_id=assignment.user_id),
        session,
    )

    assignment.fulfilled = fulfilled
    session.flush()

    expense_fulfilled = recompute(expense.id, session)
    return assignment, expense_fulfilled
