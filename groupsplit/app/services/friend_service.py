"""
services/friend_service.py — Friend requests and friendships.

Flow:
  1. A sends a request to B                → FriendRequest(A → B, PENDING)
  2. B accepts                             → request ACCEPTED, rows (A, B) and (B, A)
     or B rejects                          → request REJECTED, no rows
  3. Either side removes the friendship    → both rows deleted

Only the recipient can answer a request. A request addressed to someone else
is reported as not found rather than forbidden, so other users' request ids
cannot be discovered.

Friendship is a convenience for picking people when creating a group. No
validation, settlement or authorization rule depends on it.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from groupsplit.app.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from groupsplit.app.models.friendship import FriendRequest, FriendRequestStatus, UserFriend
from groupsplit.app.models.profile import Profile
from groupsplit.app.models.user import User

logger = logging.getLogger(__name__)


# ── Serialisers ────────────────────────────────────────────────────────────

def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _friend_dict(profile: Profile, since: datetime | None) -> dict:
    return {
        "id": profile.id,
        "username": profile.username,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "since": _isoformat(since),
    }


def _request_dict(request: FriendRequest, sender: Profile | None = None) -> dict:
    result = {
        "id": request.id,
        "from_user_id": request.from_user_id,
        "to_user_id": request.to_user_id,
        "status": request.status.value,
        "created_at": _isoformat(request.created_at),
        "responded_at": _isoformat(request.responded_at),
    }
    if sender is not None:
        result["from_user"] = {
            "id": sender.id,
            "username": sender.username,
            "full_name": sender.full_name,
        }
    return result


# ── Internal helpers ───────────────────────────────────────────────────────

def _are_friends(user_id: int, other_id: int, session: Session) -> bool:
    row = session.execute(
        select(UserFriend.id).where(
            UserFriend.user_id == user_id,
            UserFriend.friend_id == other_id,
        )
    ).scalar_one_or_none()
    return row is not None


def _pending_between(user_id: int, other_id: int, session: Session) -> FriendRequest | None:
    """The PENDING request between the two users, in either direction."""
    return session.execute(
        select(FriendRequest).where(
            FriendRequest.status == FriendRequestStatus.PENDING,
            or_(
                and_(FriendRequest.from_user_id == user_id, FriendRequest.to_user_id == other_id),
                and_(FriendRequest.from_user_id == other_id, FriendRequest.to_user_id == user_id),
            ),
        )
    ).scalars().first()


def _get_incoming_or_404(request_id: int, caller_id: int, session: Session) -> FriendRequest:
    request = session.get(FriendRequest, request_id)
    if request is None or request.to_user_id != caller_id:
        raise NotFoundError(
            ErrorCode.FRIEND_REQUEST_NOT_FOUND,
            f"Friend request {request_id} does not exist.",
        )
    return request


# ── Public API ─────────────────────────────────────────────────────────────

def list_friends(user_id: int, session: Session) -> list[dict]:
    """The caller's friends, ordered by full name."""
    rows = session.execute(
        select(Profile, UserFriend.created_at)
        .join(UserFriend, UserFriend.friend_id == Profile.id)
        .where(UserFriend.user_id == user_id)
        .order_by(Profile.full_name.asc(), Profile.id.asc())
    ).all()
    return [_friend_dict(profile, since) for profile, since in rows]


def send_friend_request(caller_id: int, target_user_id: int, session: Session) -> dict:
    """
    Creates a PENDING request from the caller to `target_user_id`.

    Raises:
      ValidationError(CANNOT_FRIEND_SELF, 400)
      NotFoundError(USER_NOT_FOUND, 404)
      ConflictError(ALREADY_FRIENDS, 409)
      ConflictError(FRIEND_REQUEST_EXISTS, 409) — a request is already pending
                                                  in either direction
    """
    if caller_id == target_user_id:
        raise ValidationError(
            ErrorCode.CANNOT_FRIEND_SELF,
            "You cannot add yourself as a friend.",
            field="user_id",
        )
    if session.get(User, target_user_id) is None:
        raise NotFoundError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} does not exist.",
        )
    if _are_friends(caller_id, target_user_id, session):
        raise ConflictError(
            ErrorCode.ALREADY_FRIENDS,
            "You are already friends with this user.",
            field="user_id",
        )
    if _pending_between(caller_id, target_user_id, session) is not None:
        raise ConflictError(
            ErrorCode.FRIEND_REQUEST_EXISTS,
            "A pending friend request already exists between you and this user.",
            field="user_id",
        )

    request = FriendRequest(
        from_user_id=caller_id,
        to_user_id=target_user_id,
        status=FriendRequestStatus.PENDING,
    )
    session.add(request)
    session.flush()

    logger.info("User %s sent friend request %s to user %s", caller_id, request.id, target_user_id)
    return _request_dict(request)


def list_incoming_requests(caller_id: int, session: Session) -> list[dict]:
    """PENDING requests addressed to the caller, oldest first, with the sender's profile."""
    rows = session.execute(
        select(FriendRequest, Profile)
        .outerjoin(Profile, Profile.id == FriendRequest.from_user_id)
        .where(
            FriendRequest.to_user_id == caller_id,
            FriendRequest.status == FriendRequestStatus.PENDING,
        )
        .order_by(FriendRequest.created_at.asc(), FriendRequest.id.asc())
    ).all()
    return [_request_dict(request, sender) for request, sender in rows]


def respond_to_request(request_id: int, caller_id: int, accept: bool, session: Session) -> dict:
    """
    Accepts or rejects a PENDING request addressed to the caller. Accepting
    writes both directed friendship rows in the same transaction.

    Raises:
      NotFoundError(FRIEND_REQUEST_NOT_FOUND, 404) — unknown, or not addressed to the caller
      ConflictError(FRIEND_REQUEST_RESOLVED, 409)  — already accepted or rejected
    """
    request = _get_incoming_or_404(request_id, caller_id, session)
    if request.status != FriendRequestStatus.PENDING:
        raise ConflictError(
            ErrorCode.FRIEND_REQUEST_RESOLVED,
            f"This friend request was already {request.status.value.lower()}.",
        )

    request.status = FriendRequestStatus.ACCEPTED if accept else FriendRequestStatus.REJECTED
    request.responded_at = datetime.now(timezone.utc)

    if accept and not _are_friends(request.to_user_id, request.from_user_id, session):
        session.add_all([
            UserFriend(user_id=request.to_user_id, friend_id=request.from_user_id),
            UserFriend(user_id=request.from_user_id, friend_id=request.to_user_id),
        ])
    session.flush()

    logger.info(
        "User %s %s friend request %s from user %s",
        caller_id, request.status.value.lower(), request.id, request.from_user_id,
    )
    return _request_dict(request)


def remove_friend(caller_id: int, friend_id: int, session: Session) -> None:
    """
    Ends a friendship for both sides.

    Raises:
      NotFoundError(FRIEND_NOT_FOUND, 404) — the two users are not friends
    """
    if not _are_friends(caller_id, friend_id, session):
        raise NotFoundError(
            ErrorCode.FRIEND_NOT_FOUND,
            f"User {friend_id} is not in your friends list.",
        )

    session.execute(
        delete(UserFriend).where(
            or_(
                and_(UserFriend.user_id == caller_id, UserFriend.friend_id == friend_id),
                and_(UserFriend.user_id == friend_id, UserFriend.friend_id == caller_id),
            )
        )
    )
    session.flush()
    logger.info("User %s removed friend %s", caller_id, friend_id)
