"""
models/profile.py — Profile table definition.

One row per User, sharing its primary key. Purely presentational data used to
resolve a user id to a display name; none of the settlement, validation or
authorization logic reads it.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupsplit.app.extensions import db


class Profile(db.Model):
    __tablename__ = "profiles"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_profiles_username_nonempty",
        ),
        CheckConstraint(
            "LENGTH(TRIM(full_name)) > 0",
            name="ck_profiles_full_name_nonempty",
        ),
    )

    # Same value as users.id; the profile is destroyed with its user.
    id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    full_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )

    avatar_url: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="profile",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Profile id={self.id} username={self.username!r}>"
