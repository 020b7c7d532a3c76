"""create sepa_deposits table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    depositstatus = sa.Enum(
        "pending", "processing", "completed", "failed",
        name="depositstatus",
    )
    depositstatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "sepa_deposits",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reference", sa.String(32), nullable=False),
        sa.Column(
            "user_id", sa.Integer,
            sa.ForeignKey("users.id", name="fk_sepa_deposits_user_id_users"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("commission_rate", sa.Numeric(6, 5), nullable=False),
        sa.Column("commission_fee", sa.Numeric(18, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("settlement_currency", sa.String(3), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(18, 10), nullable=False),
        sa.Column("converted_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("rate_source", sa.String(10), nullable=False),
        sa.Column("referral_code", sa.String(32), nullable=True),
        sa.Column(
            "contractor_id", sa.Integer,
            sa.ForeignKey("users.id", name="fk_sepa_deposits_contractor_id_users"),
            nullable=True,
        ),
        sa.Column("contractor_commission", sa.Numeric(18, 2), nullable=True),
        sa.Column("status", depositstatus, server_default="pending", nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.UniqueConstraint("reference", name="uq_sepa_deposits_reference"),
        sa.CheckConstraint("amount > 0", name="ck_sepa_deposits_amount_positive"),
        sa.CheckConstraint(
            "commission_fee >= 0", name="ck_sepa_deposits_commission_non_negative",
        ),
    )
    op.create_index("ix_sepa_deposits_reference", "sepa_deposits", ["reference"])
    op.create_index("ix_sepa_deposits_user_id", "sepa_deposits", ["user_id"])
    op.create_index("ix_sepa_deposits_referral_code", "sepa_deposits", ["referral_code"])
    op.create_index("ix_sepa_deposits_contractor_id", "sepa_deposits", ["contractor_id"])


def downgrade() -> None:
    op.drop_table("sepa_deposits")
    sa.Enum(name="depositstatus").drop(op.get_bind(), checkfirst=True)
