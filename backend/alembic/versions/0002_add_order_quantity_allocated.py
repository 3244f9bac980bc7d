"""Add quantity_allocated to customer_orders.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Tracks the metres bound to each customer order by roll allocation, so
auto-allocation only tops an order up to its ordered quantity.
"""

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.add_column(
        "customer_orders",
        sa.Column("quantity_allocated", sa.Float(), nullable=False, server_default="0.0"),
    )
    op.create_index(
        "ix_fabric_rolls_auto_allocation",
        "fabric_rolls",
        ["fabric_type", "fabric_id", "quality_grade", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_fabric_rolls_auto_allocation", table_name="fabric_rolls")
    op.drop_column("customer_orders", "quantity_allocated")
