"""
services/expense_service.py — Expense business logic.

Every mutating operation runs in this order, and nothing is written until the
last check has passed:

  1. load referenced rows                 NotFoundError       (404)
  2. Authorization Gate                   AuthorizationError  (403)
  3. resolve the split (explicit / equal)
  4. Validation Service (title, amount, non-empty split, 0.05 sum tolerance)
                                          ValidationError     (400)
  5. payer and every assignee are members ValidationError     (400)
  6. write expense + assignments (flush)
  7. Settlement Aggregator recompute (flush)

The route commits once after the service returns; any exception leaves the
transaction uncommitted and the error handler rolls it back.

Authorization rules:
  - Create: any member of the group
  - Replace: ADMIN or MODERATOR
  - Delete: ADMIN only
  - Read (list/get): any member of the group

Layer rules:
  - No Flask imports. Receives plain ints and dicts; returns ORM objects or
    raises AppError.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from groupsplit.app.errors import ErrorCode, NotFoundError, ValidationError
from groupsplit.app.models.assigned_expense import AssignedExpense
from groupsplit.app.models.expense import Expense
from groupsplit.app.models.group import Group
from groupsplit.app.models.group_member import GroupMember
from groupsplit.app.services import (
    authorization_service,
    settlement_service,
    validation_service,
)
from groupsplit.app.services.authorization_service import Action, AuthContext

SPLIT_MODE_EQUAL = "equal"
SPLIT_MODE_CUSTOM = "custom"


# ── Private helpers ────────────────────────────────────────────────────────

def _get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise NotFoundError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
        )
    return group


def _get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
        )
    return expense


def _get_member_ids(group_id: int, session: Session) -> list[int]:
    """Returns the user_ids of every membership row of a group, invited or accepted."""
    stmt = (
        select(GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def _validate_payer_is_member(payer_id: int, group_id: int, member_ids: list[int]) -> None:
    """Raises PAYER_NOT_MEMBER (400) if payer_id is not in the group."""
    if payer_id not in member_ids:
        raise ValidationError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {payer_id} is not a member of group {group_id}.",
            field="payer_id",
        )


def _validate_assignees_are_members(
        assigned: list[dict],
        group_id: int,
        member_ids: list[int],
) -> None:
    """Raises ASSIGNEE_NOT_MEMBER (400) for the first assignee not in the group."""
    member_set = set(member_ids)
    for entry in assigned:
        if entry["user_id"] not in member_set:
            raise ValidationError(
                ErrorCode.ASSIGNEE_NOT_MEMBER,
                f"User {entry['user_id']} is not a member of group {group_id}.",
                field="assigned",
            )


def _resolve_split(data: dict, payer_id: int) -> list[dict] | None:
    """
    Returns the requested split as a list of {user_id, amount} dicts.

    In "equal" mode the shares are computed here from `member_ids`; in
    "custom" mode the client's `assigned` list is used as-is.
    """
    if data.get("split_mode") == SPLIT_MODE_EQUAL:
        validation_service.validate_title(data.get("title"))
        amount = validation_service.validate_amount(data.get("amount"))
        return validation_service.compute_equal_shares(
            amount,
            data.get("member_ids") or [],
            remainder_to=payer_id,
        )
    return data.get("assigned")


def _check_split(data: dict, payer_id: int, group_id: int, session: Session) -> list[dict]:
    """Runs steps 3–5 of the pipeline and returns the validated split."""
    assigned = validation_service.validate_split(
        data.get("title"),
        data.get("amount"),
        _resolve_split(data, payer_id),
    )

    member_ids = _get_member_ids(group_id, session)
    _validate_payer_is_member(payer_id, group_id, member_ids)
    _validate_assignees_are_members(assigned, group_id, member_ids)
    return assigned


def _create_assignment_rows(expense: Expense, assigned: list[dict], session: Session) -> None:
    """Creates unfulfilled AssignedExpense rows for an expense."""
    for entry in assigned:
        session.add(
            AssignedExpense(
                expense_id=expense.id,
                user_id=entry["user_id"],
                amount=entry["amount"],
                fulfilled=False,
            )
        )
    session.flush()


def _delete_assignment_rows(expense: Expense, session: Session) -> None:
    """Removes every assignment of an expense. Used before re-creating them on replace."""
    session.execute(
        delete(AssignedExpense).where(AssignedExpense.expense_id == expense.id)
    )
    session.flush()
    session.expire(expense, ["assignments"])


# ── Public service functions ───────────────────────────────────────────────

def create_expense(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Records a new expense and its assignments in one transaction.

    Args:
        group_id:  The group this expense belongs to.
        caller_id: The authenticated user creating the expense.
        data:      Validated dict from CreateExpenseSchema. `payer_id`
                   defaults to the caller when omitted.

    Raises:
        NotFoundError(GROUP_NOT_FOUND, 404)
        AuthorizationError(FORBIDDEN, 403)           — caller not in group
        ValidationError(TITLE_REQUIRED | INVALID_AMOUNT | ASSIGNMENTS_REQUIRED
                        | SPLIT_SUM_MISMATCH | PAYER_NOT_MEMBER
                        | ASSIGNEE_NOT_MEMBER, 400)

    Returns:
        The new Expense with assignments loaded and `fulfilled` recomputed.
    """
    group = _get_group_or_404(group_id, session)

    authorization_service.require(
        caller_id,
        Action.CREATE_EXPENSE,
        AuthContext(group_id=group_id),
        session,
    )

    payer_id: int = data.get("payer_id") or caller_id
    assigned = _check_split(data, payer_id, group_id, session)

    expense = Expense(
        group_id=group_id,
        payer_id=payer_id,
        title=data["title"].strip(),
        amount=validation_service.validate_amount(data["amount"]),
        currency=data.get("currency") or group.base_currency,
        note=data.get("note") or None,
        fulfilled=False,
    )
    if data.get("occurred_at") is not None:
        expense.occurred_at = data["occurred_at"]

    session.add(expense)
    session.flush()  # populate expense.id before creating assignments

    _create_assignment_rows(expense, assigned, session)
    settlement_service.recompute(expense.id, session)

    session.refresh(expense)
    return expense


def replace_expense(
        expense_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Full edit: updates title/amount (and optional payer, note, currency,
    occurred_at) and replaces every assignment with a fresh, unfulfilled set.

    Only ADMIN or MODERATOR of the expense's group may replace it. The new
    split passes the same validation as on create before anything is written.

    Raises:
        NotFoundError(EXPENSE_NOT_FOUND, 404)
        AuthorizationError(FORBIDDEN, 403)
        ValidationError(..., 400)  — same codes as create_expense

    Returns:
        The updated Expense with its new assignments and recomputed status.
    """
    expense = _get_expense_or_404(expense_id, session)

    authorization_service.require(
        caller_id,
        Action.EDIT_EXPENSE,
        AuthContext(group_id=expense.group_id),
        session,
    )

    payer_id: int = data.get("payer_id") or expense.payer_id
    assigned = _check_split(data, payer_id, expense.group_id, session)

    # ── All checks passed — apply the edit ─────────────────────────────────
    expense.title = data["title"].strip()
    expense.amount = validation_service.validate_amount(data["amount"])
    expense.payer_id = payer_id

    if "note" in data:
        expense.note = data["note"] or None
    if data.get("currency"):
        expense.currency = data["currency"]
    if data.get("occurred_at") is not None:
        expense.occurred_at = data["occurred_at"]

    expense.updated_at = datetime.now(timezone.utc)

    _delete_assignment_rows(expense, session)
    _create_assignment_rows(expense, assigned, session)
    settlement_service.recompute(expense.id, session)

    session.refresh(expense)
    return expense


def delete_expense(
        expense_id: int,
        caller_id: int,
        session: Session,
) -> None:
    """
    Hard-deletes an expense; its assignments go with it.

    Authorization: ADMIN of the expense's group only.

    Raises:
        NotFoundError(EXPENSE_NOT_FOUND, 404)
        AuthorizationError(FORBIDDEN, 403)
    """
    expense = _get_expense_or_404(expense_id, session)

    authorization_service.require(
        caller_id,
        Action.DELETE_EXPENSE,
        AuthContext(group_id=expense.group_id),
        session,
    )

    session.delete(expense)
    session.flush()


def list_expenses(
        group_id: int,
        caller_id: int,
        session: Session,
) -> list[Expense]:
    """
    Returns every expense of a group with its assignments, newest first.

    Raises:
        NotFoundError(GROUP_NOT_FOUND, 404)
        AuthorizationError(FORBIDDEN, 403) — caller not in group
    """
    _get_group_or_404(group_id, session)
    authorization_service.require(
        caller_id,
        Action.VIEW_GROUP,
        AuthContext(group_id=group_id),
        session,
    )

    stmt = (
        select(Expense)
        .options(selectinload(Expense.assignments))
        .where(Expense.group_id == group_id)
        .order_by(Expense.occurred_at.desc(), Expense.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def get_expense(
        expense_id: int,
        caller_id: int,
        session: Session,
) -> Expense:
    """Returns one expense including its assignments. Caller must be a group member."""
    expense = _get_expense_or_404(expense_id, session)
    authorization_service.require(
        caller_id,
        Action.VIEW_GROUP,
        AuthContext(group_id=expense.group_id),
        session,
    )
    return expense


def list_user_assignments(
        caller_id: int,
        session: Session,
) -> list[tuple[Expense, list[AssignedExpense]]]:
    """
    Returns the caller's own assignments grouped by expense, newest expense first.

    Only the caller's shares are attached to each expense, never other
    members' shares.
    """
    assignments = session.execute(
        select(AssignedExpense)
        .where(AssignedExpense.user_id == caller_id)
        .order_by(AssignedExpense.id.asc())
    ).scalars().all()

    if not assignments:
        return []

    by_expense: dict[int, list[AssignedExpense]] = {}
    for assignment in assignments:
        by_expense.setdefault(assignment.expense_id, []).append(assignment)

    expenses = session.execute(
        select(Expense)
        .where(Expense.id.in_(list(by_expense)))
        .order_by(Expense.occurred_at.desc(), Expense.id.desc())
    ).scalars().all()

    return [(expense, by_expense[expense.id]) for expense in expenses]


def outstanding_total(assignments: list[AssignedExpense]) -> Decimal:
    """Sum of the unfulfilled shares in `assignments`."""
    return sum(
        (a.amount for a in assignments if not a.fulfilled),
        Decimal("0.00"),
    )
