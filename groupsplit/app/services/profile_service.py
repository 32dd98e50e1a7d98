"""
services/profile_service.py — Profile lookups and self-service edits.

Profiles are readable by any authenticated user; the full list is where a
friend request starts. Only the owner may edit a profile, so there is no
user id parameter on update: it is always the caller.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupsplit.app.errors import ConflictError, ErrorCode, NotFoundError
from groupsplit.app.models.profile import Profile


def _profile_dict(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "username": profile.username,
        "phone": profile.phone,
        "avatar_url": profile.avatar_url,
    }


def _get_profile_or_404(user_id: int, session: Session) -> Profile:
    profile = session.get(Profile, user_id)
    if profile is None:
        raise NotFoundError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
        )
    return profile


def list_profiles(session: Session) -> list[dict]:
    """All profiles ordered by full name, then id."""
    profiles = session.execute(
        select(Profile).order_by(Profile.full_name.asc(), Profile.id.asc())
    ).scalars().all()
    return [_profile_dict(p) for p in profiles]


def get_profile(user_id: int, session: Session) -> dict:
    """Raises USER_NOT_FOUND (404) for an unknown id."""
    return _profile_dict(_get_profile_or_404(user_id, session))


def update_own_profile(caller_id: int, data: dict, session: Session) -> dict:
    """
    Applies the provided fields to the caller's profile.

    Raises:
      NotFoundError(USER_NOT_FOUND, 404)
      ConflictError(DUPLICATE_USERNAME, 409) — username taken by someone else
    """
    profile = _get_profile_or_404(caller_id, session)

    username = data.get("username")
    if username is not None and username != profile.username:
        taken = session.execute(
            select(Profile.id).where(Profile.username == username, Profile.id != caller_id)
        ).scalar_one_or_none()
        if taken is not None:
            raise ConflictError(
                ErrorCode.DUPLICATE_USERNAME,
                f"The username '{username}' is already taken.",
                field="username",
            )
        profile.username = username

    if "full_name" in data:
        profile.full_name = data["full_name"].strip()
    for key in ("phone", "avatar_url"):
        if key in data:
            setattr(profile, key, data[key] or None)

    session.flush()
    return _profile_dict(profile)
