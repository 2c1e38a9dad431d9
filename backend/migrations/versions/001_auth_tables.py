"""Create auth tables: users, verification_codes, rate_limit_counters, sessions.

Revision ID: 001_auth_tables
Revises: 000_enable_extensions
Create Date: 2026-10-19

- users: member/donor/volunteer/admin accounts.
- verification_codes: hashed one-time codes. The partial unique index
  allows at most one open (unconsumed, not superseded) code per email.
- rate_limit_counters: fixed-window counters keyed by scope + identity.
- sessions: server-side session rows keyed by identifier hash.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_auth_tables"
down_revision: str | None = "000_enable_extensions"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "role",
            sa.String(20),
            server_default=sa.text("'member'"),
            nullable=False,
        ),
        sa.Column("email_verified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "role IN ('member', 'donor', 'volunteer', 'admin')",
            name="ck_users_role",
        ),
    )

    # =========================================================================
    # verification_codes
    # =========================================================================
    op.create_table(
        "verification_codes",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "attempt_count",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
    )
    op.create_index(
        "uq_verification_codes_open_email",
        "verification_codes",
        ["email"],
        unique=True,
        postgresql_where="consumed_at IS NULL AND superseded_at IS NULL",
    )
    op.create_index(
        "idx_verification_codes_email_created",
        "verification_codes",
        ["email", "created_at"],
    )
    op.create_index(
        "idx_verification_codes_created_at", "verification_codes", ["created_at"]
    )

    # =========================================================================
    # rate_limit_counters (composite PK, no UUID id)
    # =========================================================================
    op.create_table(
        "rate_limit_counters",
        sa.Column("scope", sa.String(32), nullable=False),
        sa.Column("identity", sa.String(255), nullable=False),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "count",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint(
            "scope", "identity", "window_start", name="pk_rate_limit_counters"
        ),
    )

    # =========================================================================
    # sessions
    # =========================================================================
    op.create_table(
        "sessions",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("token_hash", sa.String(64), unique=True, nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_sessions_user_id", "sessions", ["user_id"])
    op.create_index("idx_sessions_expires_at", "sessions", ["expires_at"])


def downgrade() -> None:
    op.drop_index("idx_sessions_expires_at", table_name="sessions")
    op.drop_index("idx_sessions_user_id", table_name="sessions")
    op.drop_table("sessions")

    op.drop_table("rate_limit_counters")

    op.drop_index(
        "idx_verification_codes_created_at", table_name="verification_codes"
    )
    op.drop_index(
        "idx_verification_codes_email_created", table_name="verification_codes"
    )
    op.drop_index("uq_verification_codes_open_email", table_name="verification_codes")
    op.drop_table("verification_codes")

    op.drop_table("users")
