"""Initial schema: fabrics, orders, batches, rolls, scans, shipments, stock ledger.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

number_sequences backs batch/shipment numbering (one row per scope+day).
fabric_rolls carries a CHECK on remaining_length so no mutation can push a
roll outside 0..roll_length.
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # ── Master data ──────────────────────────────────────────
    op.create_table(
        "base_fabrics",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("gsm", sa.Float(), nullable=True),
        sa.Column("width_meters", sa.Float(), nullable=True),
        sa.Column("stock_quantity", sa.Float(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_table(
        "finished_fabrics",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("base_fabric_id", sa.String(36), sa.ForeignKey("base_fabrics.id"), nullable=True),
        sa.Column("coating_type", sa.String(100), nullable=True),
        sa.Column("color", sa.String(50), nullable=True),
        sa.Column("gsm", sa.Float(), nullable=True),
        sa.Column("width_meters", sa.Float(), nullable=True),
        sa.Column("stock_quantity", sa.Float(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── Orders ───────────────────────────────────────────────
    op.create_table(
        "customer_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("internal_order_number", sa.String(50), nullable=False),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("finished_fabric_id", sa.String(36), sa.ForeignKey("finished_fabrics.id"), nullable=True),
        sa.Column("color", sa.String(50), nullable=True),
        sa.Column("quantity_ordered", sa.Float(), nullable=True),
        sa.Column("order_status", sa.String(30), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customer_orders_internal_order_number", "customer_orders", ["internal_order_number"], unique=True)
    op.create_index("ix_customer_orders_customer_id", "customer_orders", ["customer_id"])
    op.create_index("ix_customer_orders_order_status", "customer_orders", ["order_status"])

    op.create_table(
        "production_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("internal_order_number", sa.String(50), nullable=False),
        sa.Column("production_type", sa.String(20), nullable=False),
        sa.Column("base_fabric_id", sa.String(36), sa.ForeignKey("base_fabrics.id"), nullable=True),
        sa.Column("finished_fabric_id", sa.String(36), sa.ForeignKey("finished_fabrics.id"), nullable=True),
        sa.Column("customer_order_id", sa.String(36), sa.ForeignKey("customer_orders.id"), nullable=True),
        sa.Column("quantity_required", sa.Float(), nullable=False),
        sa.Column("quantity_produced", sa.Float(), nullable=True),
        sa.Column("production_status", sa.String(30), nullable=True),
        sa.Column("actual_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_production_orders_internal_order_number", "production_orders", ["internal_order_number"], unique=True)
    op.create_index("ix_production_orders_customer_order_id", "production_orders", ["customer_order_id"])
    op.create_index("ix_production_orders_production_status", "production_orders", ["production_status"])

    # ── Batches ──────────────────────────────────────────────
    op.create_table(
        "production_batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_number", sa.String(50), nullable=False),
        sa.Column("production_order_id", sa.String(36), sa.ForeignKey("production_orders.id"), nullable=False),
        sa.Column("production_type", sa.String(20), nullable=False),
        sa.Column("planned_quantity", sa.Float(), nullable=False),
        sa.Column("accepted_quantity", sa.Float(), nullable=True),
        sa.Column("wastage_quantity", sa.Float(), nullable=True),
        sa.Column("wastage_percentage", sa.Float(), nullable=True),
        sa.Column("status", sa.String(30), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_production_batches_batch_number", "production_batches", ["batch_number"], unique=True)
    op.create_index("ix_production_batches_production_order_id", "production_batches", ["production_order_id"])
    op.create_index("ix_production_batches_status", "production_batches", ["status"])
    op.create_index("ix_production_batches_created_at", "production_batches", ["created_at"])

    op.create_table(
        "wastage_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("production_batches.id"), nullable=False),
        sa.Column("wastage_type", sa.String(30), nullable=False),
        sa.Column("wastage_quantity", sa.Float(), nullable=False),
        sa.Column("wastage_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by", sa.String(100), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_wastage_records_batch_id", "wastage_records", ["batch_id"])

    # ── Rolls ────────────────────────────────────────────────
    op.create_table(
        "fabric_rolls",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("roll_number", sa.String(60), nullable=False),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("production_batches.id"), nullable=False),
        sa.Column("fabric_type", sa.String(20), nullable=False),
        sa.Column("fabric_id", sa.String(36), nullable=False),
        sa.Column("roll_length", sa.Float(), nullable=False),
        sa.Column("remaining_length", sa.Float(), nullable=False),
        sa.Column("status", sa.String(30), nullable=True),
        sa.Column("quality_grade", sa.String(5), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("customer_order_id", sa.String(36), sa.ForeignKey("customer_orders.id"), nullable=True),
        sa.Column("customer_color", sa.String(50), nullable=True),
        sa.Column("traceability_payload", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "remaining_length >= 0 AND remaining_length <= roll_length",
            name="ck_fabric_rolls_remaining_length",
        ),
    )
    op.create_index("ix_fabric_rolls_roll_number", "fabric_rolls", ["roll_number"], unique=True)
    for col in ("batch_id", "fabric_type", "fabric_id", "status", "archived", "customer_order_id", "created_at"):
        op.create_index(f"ix_fabric_rolls_{col}", "fabric_rolls", [col])

    op.create_table(
        "roll_scans",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("roll_id", sa.String(36), sa.ForeignKey("fabric_rolls.id"), nullable=False),
        sa.Column("scan_type", sa.String(30), nullable=False),
        sa.Column("tag_data", sa.Text(), nullable=False),
        sa.Column("scanned_by", sa.String(100), nullable=False),
        sa.Column("scan_location", sa.String(255), nullable=True),
        sa.Column("reference_id", sa.String(36), nullable=True),
        sa.Column("reference_type", sa.String(50), nullable=True),
        sa.Column("previous_status", sa.String(30), nullable=False),
        sa.Column("new_status", sa.String(30), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_roll_scans_roll_id", "roll_scans", ["roll_id"])
    op.create_index("ix_roll_scans_scanned_at", "roll_scans", ["scanned_at"])

    # ── Shipments ────────────────────────────────────────────
    op.create_table(
        "shipments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("shipment_number", sa.String(50), nullable=False),
        sa.Column("customer_order_id", sa.String(36), sa.ForeignKey("customer_orders.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("tracking_number", sa.String(100), nullable=True),
        sa.Column("shipped_date", sa.Date(), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_shipments_shipment_number", "shipments", ["shipment_number"], unique=True)
    op.create_index("ix_shipments_customer_order_id", "shipments", ["customer_order_id"])
    op.create_index("ix_shipments_status", "shipments", ["status"])
    op.create_index("ix_shipments_created_at", "shipments", ["created_at"])

    op.create_table(
        "shipment_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("shipment_id", sa.String(36), sa.ForeignKey("shipments.id"), nullable=False),
        sa.Column("fabric_roll_id", sa.String(36), sa.ForeignKey("fabric_rolls.id"), nullable=False),
        sa.Column("quantity_shipped", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_shipment_items_shipment_id", "shipment_items", ["shipment_id"])
    op.create_index("ix_shipment_items_fabric_roll_id", "shipment_items", ["fabric_roll_id"])

    # ── Bookkeeping ──────────────────────────────────────────
    op.create_table(
        "stock_movements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("fabric_type", sa.String(20), nullable=False),
        sa.Column("fabric_id", sa.String(36), nullable=False),
        sa.Column("movement_type", sa.String(30), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("reference_type", sa.String(30), nullable=True),
        sa.Column("reference_id", sa.String(36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_stock_movements_fabric_id", "stock_movements", ["fabric_id"])
    op.create_index("ix_stock_movements_recorded_at", "stock_movements", ["recorded_at"])

    op.create_table(
        "number_sequences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("scope", sa.String(50), nullable=False),
        sa.Column("period", sa.String(20), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("scope", "period", name="uq_number_sequences_scope_period"),
    )


def downgrade() -> None:
    op.drop_table("number_sequences")
    op.drop_table("stock_movements")
    op.drop_table("shipment_items")
    op.drop_table("shipments")
    op.drop_table("roll_scans")
    op.drop_table("fabric_rolls")
    op.drop_table("wastage_records")
    op.drop_table("production_batches")
    op.drop_table("production_orders")
    op.drop_table("customer_orders")
    op.drop_table("customers")
    op.drop_table("finished_fabrics")
    op.drop_table("base_fabrics")
