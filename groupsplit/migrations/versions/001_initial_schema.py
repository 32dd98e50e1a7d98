"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order (FK dependency order):
  users → profiles → groups → group_members → expenses → assigned_expenses

Roles and membership statuses are VARCHAR columns with CHECK constraints
(non-native enums), matching the models, so no CREATE TYPE is needed.

ON DELETE policies:
  profiles.id                   → CASCADE   (profile owned by user)
  groups.owner_id               → RESTRICT
  group_members.group_id        → CASCADE   (memberships owned by group)
  group_members.user_id         → RESTRICT
  expenses.group_id             → CASCADE
  expenses.payer_id             → RESTRICT
  assigned_expenses.expense_id  → CASCADE   (assignments owned by expense)
  assigned_expenses.user_id     → RESTRICT
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    """Apply the full initial schema."""

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    # ── profiles ───────────────────────────────────────────────────────────
    # Shares its primary key with users.

    op.create_table(
        "profiles",
        sa.Column(
            "id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_profiles_user"),
            nullable=False,
        ),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("avatar_url", sa.String(512), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_profiles"),
        sa.UniqueConstraint("username", name="uq_profiles_username"),
        sa.CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_profiles_username_nonempty",
        ),
        sa.CheckConstraint(
            "LENGTH(TRIM(full_name)) > 0",
            name="ck_profiles_full_name_nonempty",
        ),
    )

    # ── groups ─────────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("base_currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column(
            "owner_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_groups_owner"),
            nullable=False,
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
        sa.CheckConstraint("LENGTH(base_currency) = 3", name="ck_groups_base_currency_code"),
    )

    # ── group_members ──────────────────────────────────────────────────────
    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_group_members_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_group_members_user"),
            nullable=False,
        ),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
        sa.CheckConstraint(
            "role IN ('ADMIN', 'MODERATOR', 'MEMBER')",
            name="group_role",
        ),
        sa.CheckConstraint(
            "status IN ('INVITED', 'ACCEPTED')",
            name="membership_status",
        ),
    )

    # ── expenses ───────────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_expenses_group"),
            nullable=False,
        ),
        sa.Column(
            "payer_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_expenses_payer"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("fulfilled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint("LENGTH(TRIM(title)) > 0", name="ck_expenses_title_nonempty"),
    )

    # ── assigned_expenses ──────────────────────────────────────────────────
    op.create_table(
        "assigned_expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_assigned_expenses_expense"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_assigned_expenses_user"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("fulfilled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_assigned_expenses"),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_assigned_expenses_expense_user"),
        sa.CheckConstraint("amount >= 0", name="ck_assigned_expenses_amount_nonnegative"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])
    op.create_index("ix_assigned_expenses_expense_id", "assigned_expenses", ["expense_id"])
    op.create_index("ix_assigned_expenses_user_id", "assigned_expenses", ["user_id"])

    # Removal guard and "my assignments" both look for unfulfilled shares by user.
    op.create_index(
        "ix_assigned_expenses_user_open",
        "assigned_expenses",
        ["user_id"],
        postgresql_where=sa.text("fulfilled = FALSE"),
    )


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.
    Provided for local development reset only; migrations are append-only.
    """
    op.drop_index("ix_assigned_expenses_user_open",  table_name="assigned_expenses")
    op.drop_index("ix_assigned_expenses_user_id",    table_name="assigned_expenses")
    op.drop_index("ix_assigned_expenses_expense_id", table_name="assigned_expenses")
    op.drop_index("ix_expenses_group_id",            table_name="expenses")
    op.drop_index("ix_group_members_user_id",        table_name="group_members")
    op.drop_index("ix_group_members_group_id",       table_name="group_members")

    op.drop_table("assigned_expenses")
    op.drop_table("expenses")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("profiles")
    op.drop_table("users")
