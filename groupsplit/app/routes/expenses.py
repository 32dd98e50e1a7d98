"""
routes/expenses.py — Expense route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns BOTH the group-scoped paths (/groups/:id/expenses) and the
expense-ID paths (/expenses/:id).

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - serialize_expense() is a pure data-shape helper — not business logic.

Endpoints:
  POST   /groups/:id/expenses   → 201  create expense (any member)
  GET    /groups/:id/expenses   → 200  list expenses, newest first (any member)
  GET    /expenses/:id          → 200  get expense + assignments (any member)
  PUT    /expenses/:id          → 200  replace expense (ADMIN / MODERATOR)
  DELETE /expenses/:id          → 200  delete expense (ADMIN)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db
from groupsplit.app.middleware.auth_middleware import require_auth
from groupsplit.app.models.assigned_expense import AssignedExpense
from groupsplit.app.models.expense import Expense
from groupsplit.app.schemas.expense_schema import CreateExpenseSchema, ReplaceExpenseSchema
from groupsplit.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────
# Pure data-shaping — no logic. Amounts are serialised as strings.

def _display_name(user) -> str | None:
    return user.profile.full_name if user is not None and user.profile else None


def serialize_assignment(assignment: AssignedExpense) -> dict:
    return {
        "id": assignment.id,
        "expense_id": assignment.expense_id,
        "user_id": assignment.user_id,
        "full_name": _display_name(assignment.user),
        "amount": str(assignment.amount),
        "fulfilled": assignment.fulfilled,
    }


def serialize_expense(expense: Expense, assignments: list[AssignedExpense] | None = None) -> dict:
    """
    Converts an Expense ORM object to a plain dict for JSON output.

    `assignments` overrides the expense's own list (used by GET /assignments
    to show only the caller's share).
    """
    shares = expense.assignments if assignments is None else assignments
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "payer_id": expense.payer_id,
        "payer_name": _display_name(expense.payer),
        "title": expense.title,
        "amount": str(expense.amount),
        "currency": expense.currency,
        "note": expense.note,
        "fulfilled": expense.fulfilled,
        "occurred_at": expense.occurred_at.isoformat() if expense.occurred_at else None,
        "created_at": expense.created_at.isoformat() if expense.created_at else None,
        "updated_at": expense.updated_at.isoformat() if expense.updated_at else None,
        "assigned": [serialize_assignment(a) for a in shares],
    }


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


# ── Group-scoped expense routes ────────────────────────────────────────────

@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
@require_auth
def create_expense(group_id: int):
    """
    POST /groups/:id/expenses — Record a new expense with its assignments.
    Handles both 'custom' (client sends shares) and 'equal' (server divides) modes.
    """
    data = CreateExpenseSchema().load(_body())
    with dependency_guard("create_expense", group_id):
        expense = expense_service.create_expense(
            group_id=group_id,
            caller_id=g.user_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": serialize_expense(expense), "warnings": []}), 201


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: int):
    """GET /groups/:id/expenses — All expenses of a group with their assignments."""
    expenses = expense_service.list_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


# ── Expense-ID routes ──────────────────────────────────────────────────────

@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: int):
    expense = expense_service.get_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PUT"])
@require_auth
def replace_expense(expense_id: int):
    """
    PUT /expenses/:id — Replace title, amount and the whole split.
    Every assignment is recreated unfulfilled. ADMIN or MODERATOR only.
    """
    data = ReplaceExpenseSchema().load(_body())
    with dependency_guard("replace_expense", expense_id):
        expense = expense_service.replace_expense(
            expense_id=expense_id,
            caller_id=g.user_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    """DELETE /expenses/:id — Hard delete; assignments are removed with it. ADMIN only."""
    with dependency_guard("delete_expense", expense_id):
        expense_service.delete_expense(
            expense_id=expense_id,
            caller_id=g.user_id,
            session=db.session,
        )
        db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200
