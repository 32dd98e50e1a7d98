"""Add friend requests and friendships.

Revision: 002_add_friends
Created:  2026-10-17

Tables:
  friend_requests — one row per request; status PENDING → ACCEPTED | REJECTED
  user_friends    — directed pairs; an accepted request writes (a, b) and (b, a)

ON DELETE policies:
  friend_requests.from_user_id / to_user_id → CASCADE
  user_friends.user_id / friend_id          → CASCADE

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_friends"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── friend_requests ────────────────────────────────────────────────────
    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "from_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_friend_requests_from_user"),
            nullable=False,
        ),
        sa.Column(
            "to_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_friend_requests_to_user"),
            nullable=False,
        ),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_friend_requests"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_friend_requests_not_self"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'ACCEPTED', 'REJECTED')",
            name="friend_request_status",
        ),
    )

    # ── user_friends ───────────────────────────────────────────────────────
    op.create_table(
        "user_friends",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_user_friends_user"),
            nullable=False,
        ),
        sa.Column(
            "friend_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_user_friends_friend"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_friends"),
        sa.UniqueConstraint("user_id", "friend_id", name="uq_user_friends_pair"),
        sa.CheckConstraint("user_id <> friend_id", name="ck_user_friends_not_self"),
    )

    op.create_index("ix_friend_requests_to_user_id", "friend_requests", ["to_user_id"])
    op.create_index("ix_user_friends_user_id", "user_friends", ["user_id"])

    # At most one open request per ordered pair.
    op.create_index(
        "uq_friend_requests_pending_pair",
        "friend_requests",
        ["from_user_id", "to_user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )


def downgrade() -> None:
    op.drop_index("uq_friend_requests_pending_pair", table_name="friend_requests")
    op.drop_index("ix_user_friends_user_id", table_name="user_friends")
    op.drop_index("ix_friend_requests_to_user_id", table_name="friend_requests")

    op.drop_table("user_friends")
    op.drop_table("friend_requests")
