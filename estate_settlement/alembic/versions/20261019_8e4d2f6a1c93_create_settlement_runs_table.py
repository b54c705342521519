"""create settlement runs table

Revision ID: 8e4d2f6a1c93
Revises: 3c1f8a2b7d40
Create Date: 2026-10-19 09:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "8e4d2f6a1c93"
down_revision = "3c1f8a2b7d40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "settlement_runs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=64), nullable=False),
        sa.Column("agent_id", sa.String(length=64), nullable=False),
        sa.Column("agent_name", sa.String(length=255), nullable=True),
        sa.Column("requested_status", sa.String(length=50), nullable=False),
        sa.Column("buyer_id", sa.String(length=64), nullable=True),
        sa.Column("state", sa.String(length=50), nullable=False, server_default="idle"),
        sa.Column("buyers", sa.JSON(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column("toasts", sa.JSON(), nullable=False),
        sa.Column("invoice_id", sa.String(length=36), nullable=True),
        sa.Column("platform_invoice", sa.JSON(), nullable=True),
        sa.Column(
            "needs_manual_followup", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
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
        op.f("ix_settlement_runs_property_id"), "settlement_runs", ["property_id"], unique=False
    )
    op.create_index(
        op.f("ix_settlement_runs_agent_id"), "settlement_runs", ["agent_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_settlement_runs_agent_id"), table_name="settlement_runs")
    op.drop_index(op.f("ix_settlement_runs_property_id"), table_name="settlement_runs")
    op.drop_table("settlement_runs")
