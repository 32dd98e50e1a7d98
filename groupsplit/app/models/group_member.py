"""
models/group_member.py — GroupMember junction table definition.

Identity is (group_id, user_id), enforced by a unique constraint; the surrogate
`id` exists for convenient foreign keys and logging.

Role and MembershipStatus are closed enums so the service layer never compares
against bare strings. Both are stored as non-native enums (VARCHAR + CHECK)
so the same table definition works on PostgreSQL and SQLite.

Status lifecycle: INVITED -> ACCEPTED. There is no way back to INVITED;
removing a member deletes the row.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupsplit.app.extensions import db


class Role(str, enum.Enum):
    ADMIN     = "ADMIN"
    MODERATOR = "MODERATOR"
    MEMBER    = "MEMBER"


class MembershipStatus(str, enum.Enum):
    INVITED  = "INVITED"
    ACCEPTED = "ACCEPTED"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not member names."""
    return [member.value for member in enum_cls]


class GroupMember(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE — memberships are owned by their group.
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ON DELETE RESTRICT — cannot delete a user who still belongs to a group.
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    role: Mapped[Role] = mapped_column(
        Enum(
            Role,
            name="group_role",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=Role.MEMBER,
    )

    status: Mapped[MembershipStatus] = mapped_column(
        Enum(
            MembershipStatus,
            name="membership_status",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=MembershipStatus.INVITED,
    )

    invited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Set when the invitation is accepted (or at creation for the owner).
    joined_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="members",
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupMember group_id={self.group_id} "
            f"user_id={self.user_id} "
            f"role={self.role.value} "
            f"status={self.status.value}>"
        )
