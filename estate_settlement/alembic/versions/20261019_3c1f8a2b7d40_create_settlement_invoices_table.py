"""create settlement invoices table

Revision ID: 3c1f8a2b7d40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3c1f8a2b7d40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "settlement_invoices",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("invoice_number", sa.String(length=50), nullable=False),
        sa.Column("property_id", sa.String(length=64), nullable=False),
        sa.Column("property_title", sa.String(length=255), nullable=True),
        sa.Column("property_address", sa.String(length=500), nullable=True),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("seller_name", sa.String(length=255), nullable=True),
        sa.Column("seller_email", sa.String(length=255), nullable=True),
        sa.Column("agent_id", sa.String(length=64), nullable=True),
        sa.Column("agent_name", sa.String(length=255), nullable=True),
        sa.Column("agent_email", sa.String(length=255), nullable=True),
        sa.Column("invoice_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("settlement_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("property_value", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("gst_amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("total_amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column(
            "amount_paid", sa.Numeric(precision=14, scale=2), nullable=False, server_default="0"
        ),
        sa.Column("amount_due", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="AUD"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="sent"),
        sa.Column("bank_details", sa.JSON(), nullable=False),
        sa.Column("payment_record_id", sa.String(length=64), nullable=True),
        sa.Column(
            "payment_record_status", sa.String(length=20), nullable=False, server_default="pending"
        ),
        sa.Column("payment_record_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_settlement_invoices_invoice_number"),
        "settlement_invoices",
        ["invoice_number"],
        unique=False,
    )
    for column in ("property_id", "seller_id", "agent_id", "payment_record_status"):
        op.create_index(
            op.f(f"ix_settlement_invoices_{column}"),
            "settlement_invoices",
            [column],
            unique=False,
        )


def downgrade() -> None:
    for column in ("payment_record_status", "agent_id", "seller_id", "property_id"):
        op.drop_index(op.f(f"ix_settlement_invoices_{column}"), table_name="settlement_invoices")
    op.drop_index(
        op.f("ix_settlement_invoices_invoice_number"), table_name="settlement_invoices"
    )
    op.drop_table("settlement_invoices")
