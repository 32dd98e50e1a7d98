"""
services/authorization_service.py — Role-based permission checks per group.

Decision table (one row per Action):

  TOGGLE_ASSIGNMENT  assignment's own user, OR ADMIN / MODERATOR
  CREATE_EXPENSE     any member of the group
  EDIT_EXPENSE       ADMIN or MODERATOR
  DELETE_EXPENSE     ADMIN
  VIEW_GROUP         any member of the group
  UPDATE_GROUP       ADMIN
  ADD_MEMBERS        ADMIN
  CHANGE_ROLE        ADMIN, and target role is MODERATOR or MEMBER
  REMOVE_MEMBER      ADMIN, and the target has no unfulfilled assignment
                     in the group

A missing membership row means "no role", which is simply a denial: it takes
the same 403 path as an insufficient role.

can_perform() evaluates the whole row and returns a bool.
require() raises AuthorizationError (403) when the role part of the row fails.
The REMOVE_MEMBER outstanding-assignment guard is a business rule rather than
a role problem, so group_service reports it as a 400 via
require_no_outstanding_assignments().

Layer rules:
  - No Flask imports. Receives plain ints and a SQLAlchemy session.
  - Read-only: nothing in this module writes to the database.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupsplit.app.errors import AuthorizationError, ErrorCode, ValidationError
from groupsplit.app.models.assigned_expense import AssignedExpense
from groupsplit.app.models.expense import Expense
from groupsplit.app.models.group_member import GroupMember, Role


class Action(str, enum.Enum):
    TOGGLE_ASSIGNMENT = "toggle_assignment"
    CREATE_EXPENSE    = "create_expense"
    EDIT_EXPENSE      = "edit_expense"
    DELETE_EXPENSE    = "delete_expense"
    VIEW_GROUP        = "view_group"
    UPDATE_GROUP      = "update_group"
    ADD_MEMBERS       = "add_members"
    CHANGE_ROLE       = "change_role"
    REMOVE_MEMBER     = "remove_member"


# Roles a member may be moved to through CHANGE_ROLE. ADMIN is only ever
# granted at group creation.
ASSIGNABLE_ROLES = frozenset({Role.MODERATOR, Role.MEMBER})

_ANY_MEMBER = frozenset(Role)
_STAFF = frozenset({Role.ADMIN, Role.MODERATOR})
_ADMIN_ONLY = frozenset({Role.ADMIN})

_ALLOWED_ROLES: dict[Action, frozenset[Role]] = {
    Action.TOGGLE_ASSIGNMENT: _STAFF,
    Action.CREATE_EXPENSE:    _ANY_MEMBER,
    Action.EDIT_EXPENSE:      _STAFF,
    Action.DELETE_EXPENSE:    _ADMIN_ONLY,
    Action.VIEW_GROUP:        _ANY_MEMBER,
    Action.UPDATE_GROUP:      _ADMIN_ONLY,
    Action.ADD_MEMBERS:       _ADMIN_ONLY,
    Action.CHANGE_ROLE:       _ADMIN_ONLY,
    Action.REMOVE_MEMBER:     _ADMIN_ONLY,
}

_DENIAL_MESSAGES: dict[Action, str] = {
    Action.TOGGLE_ASSIGNMENT: "Not allowed to modify this payment status.",
    Action.CREATE_EXPENSE:    "Only group members can add expenses.",
    Action.EDIT_EXPENSE:      "Only group admins and moderators can edit expenses.",
    Action.DELETE_EXPENSE:    "Only group admins can delete expenses.",
    Action.VIEW_GROUP:        "You are not a member of this group.",
    Action.UPDATE_GROUP:      "Only group admins can update the group.",
    Action.ADD_MEMBERS:       "Only group admins can add members.",
    Action.CHANGE_ROLE:       "Only group admins can change member roles.",
    Action.REMOVE_MEMBER:     "Only group admins can remove members.",
}


@dataclass(frozen=True)
class AuthContext:
    """What an action targets. Only the fields relevant to the action are read."""

    group_id: int
    assignment_user_id: int | None = None
    target_user_id: int | None = None
    target_role: Role | None = None


# ── Lookups ────────────────────────────────────────────────────────────────

def get_membership(group_id: int, user_id: int, session: Session) -> GroupMember | None:
    """Returns the membership row, or None if the user is not in the group."""
    return session.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def get_role(group_id: int, user_id: int, session: Session) -> Role | None:
    """Returns the user's role in the group, or None when there is no membership."""
    membership = get_membership(group_id, user_id, session)
    return membership.role if membership is not None else None


def has_outstanding_assignments(group_id: int, user_id: int, session: Session) -> bool:
    """True if the user owes at least one unfulfilled share on an expense of the group."""
    outstanding = session.execute(
        select(AssignedExpense.id)
        .join(Expense, AssignedExpense.expense_id == Expense.id)
        .where(
            Expense.group_id == group_id,
            AssignedExpense.user_id == user_id,
            AssignedExpense.fulfilled.is_(False),
        )
        .limit(1)
    ).scalar_one_or_none()
    return outstanding is not None


# ── Decisions ──────────────────────────────────────────────────────────────

def _role_allows(actor_id: int, role: Role | None, action: Action, context: AuthContext) -> bool:
    """The role part of the decision table. Pure; no DB access."""
    if action == Action.TOGGLE_ASSIGNMENT and actor_id == context.assignment_user_id:
        # Self-action is allowed regardless of role.
        return True

    if role is None or role not in _ALLOWED_ROLES[action]:
        return False

    if action == Action.CHANGE_ROLE:
        return context.target_role in ASSIGNABLE_ROLES

    return True


def can_perform(actor_id: int, action: Action, context: AuthContext, session: Session) -> bool:
    """
    Evaluates the full decision-table row for `action`.

    Returns False (never raises) for unknown members, insufficient roles,
    disallowed target roles, and removals blocked by outstanding assignments.
    """
    role = get_role(context.group_id, actor_id, session)
    if not _role_allows(actor_id, role, action, context):
        return False

    if action == Action.REMOVE_MEMBER:
        return not has_outstanding_assignments(context.group_id, context.target_user_id, session)

    return True


def require(actor_id: int, action: Action, context: AuthContext, session: Session) -> Role | None:
    """
    Raises AuthorizationError (FORBIDDEN, 403) unless the actor's role permits
    `action`. Returns the actor's role (None for a self-toggle by a non-member).
    """
    role = get_role(context.group_id, actor_id, session)
    if not _role_allows(actor_id, role, action, context):
        raise AuthorizationError(ErrorCode.FORBIDDEN, _DENIAL_MESSAGES[action])
    return role


def require_no_outstanding_assignments(group_id: int, user_id: int, session: Session) -> None:
    """Raises MEMBER_HAS_OUTSTANDING_ASSIGNMENTS (400) if the member still owes a share."""
    if has_outstanding_assignments(group_id, user_id, session):
        raise ValidationError(
            ErrorCode.MEMBER_HAS_OUTSTANDING_ASSIGNMENTS,
            "This member still has unpaid expenses in the group and cannot be removed.",
            field="user_id",
        )
