"""
routes/assignments.py — Per-member share route handlers.

Endpoints (base url_prefix=/api/v1/assignments):
  GET    /assignments        → 200  caller's own shares, grouped by expense
  PATCH  /assignments/:id    → 200  set `fulfilled` on one share; the parent
                                    expense is recomputed in the same transaction

The toggle response carries both the assignment and the recomputed
`expense_fulfilled` so the UI can update the expense badge without a refetch.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from groupsplit.app.errors import dependency_guard
from groupsplit.app.extensions import db
from groupsplit.app.middleware.auth_middleware import require_auth
from groupsplit.app.routes.expenses import serialize_assignment, serialize_expense
from groupsplit.app.schemas.expense_schema import ToggleAssignmentSchema
from groupsplit.app.services import expense_service, settlement_service

assignments_bp = Blueprint("assignments", __name__)


@assignments_bp.route("", methods=["GET"])
@require_auth
def list_my_assignments():
    """GET /assignments — Expenses the caller owes a share on, with only that share attached."""
    rows = expense_service.list_user_assignments(
        caller_id=g.user_id,
        session=db.session,
    )
    data = []
    for expense, shares in rows:
        item = serialize_expense(expense, assignments=shares)
        item["outstanding"] = str(expense_service.outstanding_total(shares))
        data.append(item)
    return jsonify({"data": data, "warnings": []}), 200


@assignments_bp.route("/<int:assignment_id>", methods=["PATCH"])
@require_auth
def toggle_assignment(assignment_id: int):
    """PATCH /assignments/:id — Mark a share paid or unpaid."""
    data = ToggleAssignmentSchema().load(request.get_json(force=True, silent=True) or {})
    with dependency_guard("toggle_assignment", assignment_id):
        assignment, expense_fulfilled = settlement_service.toggle_assignment(
            assignment_id=assignment_id,
            caller_id=g.user_id,
            fulfilled=data["fulfilled"],
            session=db.session,
        )
        db.session.commit()
    return jsonify({
        "data": {
            **serialize_assignment(assignment),
            "expense_fulfilled": expense_fulfilled,
        },
        "warnings": [],
    }), 200
