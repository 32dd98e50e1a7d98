"""
models/friendship.py — UserFriend and FriendRequest table definitions.

A friendship is stored as two directed rows, (a, b) and (b, a), written
together when a request is accepted and deleted together on removal. Listing
a user's friends is then a single lookup on user_id.

FriendRequest lifecycle: PENDING -> ACCEPTED | REJECTED. Resolved requests
are kept as history; at most one PENDING request may exist between two users
in either direction, which the service layer enforces.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from groupsplit.app.extensions import db


class FriendRequestStatus(str, enum.Enum):
    PENDING  = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class UserFriend(db.Model):
    __tablename__ = "user_friends"

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_user_friends_pair"),
        CheckConstraint("user_id <> friend_id", name="ck_user_friends_not_self"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE — friendships disappear with either user.
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    friend_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<UserFriend user_id={self.user_id} friend_id={self.friend_id}>"


class FriendRequest(db.Model):
    __tablename__ = "friend_requests"

    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name="ck_friend_requests_not_self"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    from_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    to_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[FriendRequestStatus] = mapped_column(
        Enum(
            FriendRequestStatus,
            name="friend_request_status",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=lambda cls: [member.value for member in cls],
        ),
        nullable=False,
        default=FriendRequestStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<FriendRequest id={self.id} "
            f"from={self.from_user_id} to={self.to_user_id} "
            f"status={self.status.value}>"
        )
