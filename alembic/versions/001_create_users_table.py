"""create users table

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("balance", sa.Numeric(18, 2), server_default="0", nullable=False),
        sa.Column("balance_currency", sa.String(3), server_default="USD", nullable=False),
        sa.Column("is_contractor", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("referral_code", sa.String(32), nullable=True),
        sa.Column("referred_by", sa.String(32), nullable=True),
        sa.Column("contractor_commission_rate", sa.Numeric(6, 5), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("referral_code", name="uq_users_referral_code"),
        sa.CheckConstraint(
            "contractor_commission_rate IS NULL OR "
            "(contractor_commission_rate >= 0 AND contractor_commission_rate < 1)",
            name="ck_users_contractor_rate_fraction",
        ),
    )
    op.create_index("ix_users_referral_code", "users", ["referral_code"])
    op.create_index("ix_users_referred_by", "users", ["referred_by"])


def downgrade() -> None:
    op.drop_index("ix_users_referred_by", table_name="users")
    op.drop_index("ix_users_referral_code", table_name="users")
    op.drop_table("users")
