"""
services/group_service.py — Group and membership business logic.

Authorization rules (all via authorization_service):
  - Read a group / its members:   any member (FORBIDDEN 403 otherwise)
  - Rename / (de)activate:        ADMIN
  - Invite members:               ADMIN
  - Change a member's role:       ADMIN, new role MODERATOR or MEMBER
  - Remove a member:              ADMIN, and the member owes nothing in the group
  - Accept an invitation:         the invited user themselves

Non-members receive 403, not 404, for an existing group.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupsplit.app.errors import (
    ConflictError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)
from groupsplit.app.models.group import Group
from groupsplit.app.models.group_member import GroupMember, MembershipStatus, Role
from groupsplit.app.models.profile import Profile
from groupsplit.app.models.user import User
from groupsplit.app.services import authorization_service
from groupsplit.app.services.authorization_service import Action, AuthContext

logger = logging.getLogger(__name__)


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


def _get_member_or_404(group_id: int, user_id: int, session: Session) -> GroupMember:
    """Returns the membership row or raises MEMBER_NOT_FOUND (404)."""
    membership = authorization_service.get_membership(group_id, user_id, session)
    if membership is None:
        raise NotFoundError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"User {user_id} is not a member of group {group_id}.",
        )
    return membership


def _member_dict(membership: GroupMember, profile: Profile | None) -> dict:
    return {
        "user_id": membership.user_id,
        "role": membership.role.value,
        "status": membership.status.value,
        "full_name": profile.full_name if profile else None,
        "username": profile.username if profile else None,
        "invited_at": membership.invited_at.isoformat() if membership.invited_at else None,
        "joined_at": membership.joined_at.isoformat() if membership.joined_at else None,
    }


def _build_group_dict(group: Group, members: list[dict] | None = None, role: Role | None = None) -> dict:
    """Serialises a Group to a plain dict. The member list is only attached on detail reads."""
    result = {
        "id": group.id,
        "name": group.name,
        "base_currency": group.base_currency,
        "owner_id": group.owner_id,
        "active": group.active,
        "created_at": group.created_at.isoformat() if group.created_at else None,
    }
    if role is not None:
        result["my_role"] = role.value
    if members is not None:
        result["members"] = members
    return result


def _list_member_dicts(group_id: int, session: Session) -> list[dict]:
    stmt = (
        select(GroupMember, Profile)
        .outerjoin(Profile, Profile.id == GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.id.asc())
    )
    return [_member_dict(m, p) for m, p in session.execute(stmt).all()]


def _invite(group_id: int, user_ids: list[int], session: Session) -> list[GroupMember]:
    """Creates INVITED/MEMBER rows. Raises USER_NOT_FOUND or ALREADY_MEMBER before writing anything."""
    for user_id in user_ids:
        if session.get(User, user_id) is None:
            raise NotFoundError(
                ErrorCode.USER_NOT_FOUND,
                f"User {user_id} does not exist.",
                field="member_ids",
            )
        if authorization_service.get_membership(group_id, user_id, session) is not None:
            raise ConflictError(
                ErrorCode.ALREADY_MEMBER,
                f"User {user_id} is already a member of group {group_id}.",
                field="member_ids",
            )

    now = datetime.now(timezone.utc)
    invited = []
    for user_id in user_ids:
        membership = GroupMember(
            group_id=group_id,
            user_id=user_id,
            role=Role.MEMBER,
            status=MembershipStatus.INVITED,
            invited_at=now,
        )
        session.add(membership)
        invited.append(membership)
    session.flush()
    return invited


# ── Public service functions ───────────────────────────────────────────────

def create_group(
        name: str,
        owner_id: int,
        session: Session,
        base_currency: str = "USD",
        member_ids: list[int] | None = None,
) -> dict:
    """
    Creates a new group. The creator becomes its ADMIN (already accepted);
    every user in `member_ids` is invited as MEMBER.

    Raises:
      NotFoundError(USER_NOT_FOUND, 404) — an invited user does not exist

    Returns: dict with group details and the initial member list.
    """
    group = Group(name=name.strip(), base_currency=base_currency, owner_id=owner_id, active=True)
    session.add(group)
    session.flush()  # populate group.id before creating memberships

    session.add(
        GroupMember(
            group_id=group.id,
            user_id=owner_id,
            role=Role.ADMIN,
            status=MembershipStatus.ACCEPTED,
            joined_at=datetime.now(timezone.utc),
        )
    )
    session.flush()

    invitees = [uid for uid in dict.fromkeys(member_ids or []) if uid != owner_id]
    _invite(group.id, invitees, session)

    session.refresh(group)
    logger.info("Group %s created by user %s with %d invitees", group.id, owner_id, len(invitees))
    return _build_group_dict(group, _list_member_dicts(group.id, session), Role.ADMIN)


def list_groups(user_id: int, session: Session) -> list[dict]:
    """
    Returns all groups the user belongs to (invited or accepted), oldest first.

    List entries carry the caller's own role and status but no member list.
    """
    stmt = (
        select(Group, GroupMember)
        .join(GroupMember, Group.id == GroupMember.group_id)
        .where(GroupMember.user_id == user_id)
        .order_by(Group.created_at.asc(), Group.id.asc())
    )
    result = []
    for group, membership in session.execute(stmt).all():
        item = _build_group_dict(group, role=membership.role)
        item["my_status"] = membership.status.value
        result.append(item)
    return result


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    """Returns full group details including the member list with display names."""
    group = _get_group_or_404(group_id, session)
    role = authorization_service.require(
        caller_id, Action.VIEW_GROUP, AuthContext(group_id=group_id), session
    )
    return _build_group_dict(group, _list_member_dicts(group_id, session), role)


def update_group(group_id: int, caller_id: int, data: dict, session: Session) -> dict:
    """
    Renames and/or (de)activates a group. ADMIN only.

    `data` may contain `name` and/or `active`; absent keys are left untouched.
    """
    group = _get_group_or_404(group_id, session)
    role = authorization_service.require(
        caller_id, Action.UPDATE_GROUP, AuthContext(group_id=group_id), session
    )

    if "name" in data:
        group.name = data["name"].strip()
    if "active" in data:
        group.active = data["active"]
    session.flush()

    return _build_group_dict(group, role=role)


def add_members(group_id: int, caller_id: int, member_ids: list[int], session: Session) -> list[dict]:
    """
    Invites users into a group. Only an ADMIN may call this.

    Raises:
      NotFoundError(GROUP_NOT_FOUND, 404)
      AuthorizationError(FORBIDDEN, 403)
      NotFoundError(USER_NOT_FOUND, 404)   — a target user does not exist
      ConflictError(ALREADY_MEMBER, 409)   — a target user is already in the group

    Returns: one member dict per invited user.
    """
    _get_group_or_404(group_id, session)
    authorization_service.require(
        caller_id, Action.ADD_MEMBERS, AuthContext(group_id=group_id), session
    )

    invited = _invite(group_id, list(dict.fromkeys(member_ids)), session)
    return [_member_dict(m, session.get(Profile, m.user_id)) for m in invited]


def change_role(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        new_role: Role,
        session: Session,
) -> dict:
    """
    Moves a member to MODERATOR or MEMBER. Only an ADMIN may call this.

    Raises:
      ValidationError(INVALID_ROLE, 400)   — new_role is not assignable
      AuthorizationError(FORBIDDEN, 403)   — caller is not ADMIN
      NotFoundError(MEMBER_NOT_FOUND, 404) — target is not in the group
    """
    _get_group_or_404(group_id, session)

    if new_role not in authorization_service.ASSIGNABLE_ROLES:
        raise ValidationError(
            ErrorCode.INVALID_ROLE,
            "Role must be MODERATOR or MEMBER.",
            field="role",
        )

    authorization_service.require(
        caller_id,
        Action.CHANGE_ROLE,
        AuthContext(group_id=group_id, target_user_id=target_user_id, target_role=new_role),
        session,
    )

    membership = _get_member_or_404(group_id, target_user_id, session)
    membership.role = new_role
    session.flush()

    logger.info(
        "User %s set role of user %s in group %s to %s",
        caller_id, target_user_id, group_id, new_role.value,
    )
    return _member_dict(membership, session.get(Profile, target_user_id))


def remove_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
) -> None:
    """
    Removes a user from a group.

    Checks, in order:
      AuthorizationError(FORBIDDEN, 403)                         — caller not ADMIN
      NotFoundError(MEMBER_NOT_FOUND, 404)                       — target not in group
      ValidationError(MEMBER_HAS_OUTSTANDING_ASSIGNMENTS, 400)   — target still owes a share
    """
    _get_group_or_404(group_id, session)
    authorization_service.require(
        caller_id,
        Action.REMOVE_MEMBER,
        AuthContext(group_id=group_id, target_user_id=target_user_id),
        session,
    )

    membership = _get_member_or_404(group_id, target_user_id, session)
    authorization_service.require_no_outstanding_assignments(group_id, target_user_id, session)

    session.delete(membership)
    session.flush()
    logger.info("User %s removed user %s from group %s", caller_id, target_user_id, group_id)


def accept_invitation(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Moves the caller's own membership from INVITED to ACCEPTED.

    Raises:
      NotFoundError(GROUP_NOT_FOUND | MEMBER_NOT_FOUND, 404)
      ConflictError(INVITATION_ALREADY_ACCEPTED, 409)
    """
    _get_group_or_404(group_id, session)
    membership = _get_member_or_404(group_id, caller_id, session)

    if membership.status != MembershipStatus.INVITED:
        raise ConflictError(
            ErrorCode.INVITATION_ALREADY_ACCEPTED,
            f"You have already joined group {group_id}.",
        )

    membership.status = MembershipStatus.ACCEPTED
    membership.joined_at = datetime.now(timezone.utc)
    session.flush()
    return _member_dict(membership, session.get(Profile, caller_id))
