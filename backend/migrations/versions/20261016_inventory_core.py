"""Inventory core schema: reference registries, items, ledger, allocations,
purchase orders, alerts, counts and document sequences

Revision ID: 20261016_inventory_core
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261016_inventory_core"
down_revision = None
branch_labels = None
depends_on = None


QTY = sa.Numeric(12, 2)
COST = sa.Numeric(14, 4)
MONEY = sa.Numeric(15, 2)


def _timestamps(updated: bool = True) -> list:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False)
        )
    return cols


def upgrade():
    # Reference registries
    op.create_table(
        "inventory_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_inventory_categories_name"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "inventory_units",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("abbreviation", sa.String(length=10), nullable=False),
        sa.Column("unit_type", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("abbreviation", name="uq_inventory_units_abbreviation"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "inventory_suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("legal_name", sa.String(length=255), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("website", sa.String(length=255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("account_number", sa.String(length=100), nullable=True),
        sa.Column("payment_terms", sa.String(length=100), nullable=True),
        sa.Column("lead_time_days", sa.Integer(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("is_preferred", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_inventory_suppliers_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_suppliers_org_id", "inventory_suppliers", ["org_id"], unique=False)
    op.create_index("ix_inventory_suppliers_org_name", "inventory_suppliers", ["org_id", "name"], unique=False)

    op.create_table(
        "inventory_locations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("location_type", sa.String(length=50), nullable=False),
        sa.Column("parent_location_id", sa.Integer(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("manager_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["parent_location_id"], ["inventory_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "code", name="uq_inventory_locations_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_locations_org_id", "inventory_locations", ["org_id"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "document_type", "year", name="uq_doc_sequences_org_type_year"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_org_id", "document_sequences", ["org_id"], unique=False)
    op.create_index("ix_document_sequences_document_type", "document_sequences", ["document_type"], unique=False)

    # Items
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("unit_of_measure_id", sa.Integer(), nullable=True),
        sa.Column("primary_supplier_id", sa.Integer(), nullable=True),
        sa.Column("primary_location_id", sa.Integer(), nullable=True),
        sa.Column("unit_cost", COST, nullable=False),
        sa.Column("average_cost", COST, nullable=True),
        sa.Column("last_purchase_price", COST, nullable=True),
        sa.Column("selling_price", COST, nullable=True),
        sa.Column("quantity_on_hand", QTY, nullable=False),
        sa.Column("quantity_allocated", QTY, nullable=False),
        sa.Column("quantity_available", QTY, nullable=False),
        sa.Column("quantity_on_order", QTY, nullable=False),
        sa.Column("reorder_level", QTY, nullable=False),
        sa.Column("reorder_quantity", QTY, nullable=False),
        sa.Column("max_stock_level", QTY, nullable=True),
        sa.Column("manufacturer", sa.String(length=255), nullable=True),
        sa.Column("model_number", sa.String(length=100), nullable=True),
        sa.Column("part_number", sa.String(length=100), nullable=True),
        sa.Column("barcode", sa.String(length=100), nullable=True),
        sa.Column("track_by_serial", sa.Boolean(), nullable=False),
        sa.Column("track_by_batch", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("status_override", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("last_restocked_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_counted_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity_available >= 0", name="ck_inventory_items_available_nonneg"),
        sa.CheckConstraint("quantity_allocated >= 0", name="ck_inventory_items_allocated_nonneg"),
        sa.CheckConstraint("quantity_on_order >= 0", name="ck_inventory_items_on_order_nonneg"),
        sa.ForeignKeyConstraint(["category_id"], ["inventory_categories.id"]),
        sa.ForeignKeyConstraint(["unit_of_measure_id"], ["inventory_units.id"]),
        sa.ForeignKeyConstraint(["primary_supplier_id"], ["inventory_suppliers.id"]),
        sa.ForeignKeyConstraint(["primary_location_id"], ["inventory_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "item_code", name="uq_inventory_items_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_items_org_id", "inventory_items", ["org_id"], unique=False)
    op.create_index("ix_inventory_items_category_id", "inventory_items", ["category_id"], unique=False)
    op.create_index("ix_inventory_items_primary_supplier_id", "inventory_items", ["primary_supplier_id"], unique=False)
    op.create_index("ix_inventory_items_primary_location_id", "inventory_items", ["primary_location_id"], unique=False)
    op.create_index("ix_inventory_items_barcode", "inventory_items", ["barcode"], unique=False)
    op.create_index("ix_inventory_items_status", "inventory_items", ["status"], unique=False)
    op.create_index("ix_inventory_items_org_status", "inventory_items", ["org_id", "status"], unique=False)
    op.create_index("ix_inventory_items_org_deleted", "inventory_items", ["org_id", "is_deleted"], unique=False)

    # Purchase orders
    op.create_table(
        "inventory_purchase_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("po_number", sa.String(length=32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("expected_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ship_to_location_id", sa.Integer(), nullable=True),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("shipping_cost", MONEY, nullable=False),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("payment_terms", sa.String(length=100), nullable=True),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("amount_paid", MONEY, nullable=False),
        sa.Column("supplier_invoice_number", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["supplier_id"], ["inventory_suppliers.id"]),
        sa.ForeignKeyConstraint(["ship_to_location_id"], ["inventory_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "po_number", name="uq_inventory_purchase_orders_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_purchase_orders_org_id", "inventory_purchase_orders", ["org_id"], unique=False)
    op.create_index("ix_inventory_purchase_orders_supplier_id", "inventory_purchase_orders", ["supplier_id"], unique=False)
    op.create_index("ix_inventory_purchase_orders_status", "inventory_purchase_orders", ["status"], unique=False)
    op.create_index(
        "ix_inventory_purchase_orders_org_status", "inventory_purchase_orders", ["org_id", "status"], unique=False
    )

    op.create_table(
        "inventory_purchase_order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity_ordered", QTY, nullable=False),
        sa.Column("quantity_received", QTY, nullable=False),
        sa.Column("unit_cost", COST, nullable=False),
        sa.Column("line_total", MONEY, nullable=False),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint("quantity_received <= quantity_ordered", name="ck_inventory_po_items_received_le_ordered"),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["inventory_purchase_orders.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("purchase_order_id", "item_id", name="uq_inventory_po_items_po_item"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_inventory_purchase_order_items_purchase_order_id",
        "inventory_purchase_order_items",
        ["purchase_order_id"],
        unique=False,
    )
    op.create_index("ix_inventory_purchase_order_items_item_id", "inventory_purchase_order_items", ["item_id"], unique=False)

    # Allocations
    op.create_table(
        "inventory_allocations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(length=64), nullable=True),
        sa.Column("bid_id", sa.String(length=64), nullable=True),
        sa.Column("quantity_allocated", QTY, nullable=False),
        sa.Column("quantity_used", QTY, nullable=False),
        sa.Column("quantity_returned", QTY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("allocation_date", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("expected_use_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_use_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("allocated_by", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(job_id IS NOT NULL AND bid_id IS NULL) OR (job_id IS NULL AND bid_id IS NOT NULL)",
            name="ck_inventory_allocations_job_xor_bid",
        ),
        sa.CheckConstraint(
            "quantity_used + quantity_returned <= quantity_allocated",
            name="ck_inventory_allocations_conservation",
        ),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_allocations_org_id", "inventory_allocations", ["org_id"], unique=False)
    op.create_index("ix_inventory_allocations_item_id", "inventory_allocations", ["item_id"], unique=False)
    op.create_index("ix_inventory_allocations_job_id", "inventory_allocations", ["job_id"], unique=False)
    op.create_index("ix_inventory_allocations_bid_id", "inventory_allocations", ["bid_id"], unique=False)
    op.create_index("ix_inventory_allocations_status", "inventory_allocations", ["status"], unique=False)
    op.create_index("ix_inventory_allocations_item_status", "inventory_allocations", ["item_id", "status"], unique=False)

    # Counts
    op.create_table(
        "inventory_counts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("count_number", sa.String(length=32), nullable=False),
        sa.Column("count_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("count_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_variance_quantity", QTY, nullable=True),
        sa.Column("total_variance_cost", MONEY, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("completed_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["location_id"], ["inventory_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "count_number", name="uq_inventory_counts_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_counts_org_id", "inventory_counts", ["org_id"], unique=False)
    op.create_index("ix_inventory_counts_status", "inventory_counts", ["status"], unique=False)

    # Ledger
    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("transaction_number", sa.String(length=32), nullable=False),
        sa.Column("transaction_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", QTY, nullable=False),
        sa.Column("unit_cost", COST, nullable=True),
        sa.Column("total_cost", MONEY, nullable=True),
        sa.Column("balance_after", QTY, nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("from_location_id", sa.Integer(), nullable=True),
        sa.Column("to_location_id", sa.Integer(), nullable=True),
        sa.Column("transfer_group", sa.String(length=32), nullable=True),
        sa.Column("purchase_order_id", sa.Integer(), nullable=True),
        sa.Column("allocation_id", sa.Integer(), nullable=True),
        sa.Column("count_id", sa.Integer(), nullable=True),
        sa.Column("job_id", sa.String(length=64), nullable=True),
        sa.Column("bid_id", sa.String(length=64), nullable=True),
        sa.Column("batch_number", sa.String(length=100), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("reference_number", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["inventory_locations.id"]),
        sa.ForeignKeyConstraint(["from_location_id"], ["inventory_locations.id"]),
        sa.ForeignKeyConstraint(["to_location_id"], ["inventory_locations.id"]),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["inventory_purchase_orders.id"]),
        sa.ForeignKeyConstraint(["allocation_id"], ["inventory_allocations.id"]),
        sa.ForeignKeyConstraint(["count_id"], ["inventory_counts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "transaction_number", name="uq_inventory_transactions_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_transactions_org_id", "inventory_transactions", ["org_id"], unique=False)
    op.create_index("ix_inventory_transactions_item_id", "inventory_transactions", ["item_id"], unique=False)
    op.create_index("ix_inventory_transactions_transaction_type", "inventory_transactions", ["transaction_type"], unique=False)
    op.create_index("ix_inventory_transactions_location_id", "inventory_transactions", ["location_id"], unique=False)
    op.create_index("ix_inventory_transactions_transfer_group", "inventory_transactions", ["transfer_group"], unique=False)
    op.create_index("ix_inventory_transactions_purchase_order_id", "inventory_transactions", ["purchase_order_id"], unique=False)
    op.create_index("ix_inventory_transactions_allocation_id", "inventory_transactions", ["allocation_id"], unique=False)
    op.create_index("ix_inventory_transactions_job_id", "inventory_transactions", ["job_id"], unique=False)
    op.create_index("ix_inventory_transactions_bid_id", "inventory_transactions", ["bid_id"], unique=False)
    op.create_index("ix_inventory_transactions_created_at", "inventory_transactions", ["created_at"], unique=False)
    op.create_index("ix_inventory_transactions_item_seq", "inventory_transactions", ["item_id", "id"], unique=False)
    op.create_index(
        "ix_inventory_transactions_item_batch", "inventory_transactions", ["item_id", "batch_number"], unique=False
    )

    op.create_table(
        "inventory_count_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("count_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("system_quantity", QTY, nullable=True),
        sa.Column("counted_quantity", QTY, nullable=True),
        sa.Column("variance", QTY, nullable=True),
        sa.Column("variance_percentage", sa.Numeric(9, 2), nullable=True),
        sa.Column("unit_cost", COST, nullable=True),
        sa.Column("variance_cost", MONEY, nullable=True),
        sa.Column("counted_by", sa.Integer(), nullable=True),
        sa.Column("counted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("adjustment_transaction_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["count_id"], ["inventory_counts.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["adjustment_transaction_id"], ["inventory_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("count_id", "item_id", name="uq_inventory_count_items_count_item"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_count_items_count_id", "inventory_count_items", ["count_id"], unique=False)
    op.create_index("ix_inventory_count_items_item_id", "inventory_count_items", ["item_id"], unique=False)

    # Item history
    op.create_table(
        "inventory_item_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("field_changed", sa.String(length=100), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_item_history_org_id", "inventory_item_history", ["org_id"], unique=False)
    op.create_index("ix_inventory_item_history_item_id", "inventory_item_history", ["item_id"], unique=False)

    op.create_table(
        "inventory_price_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("price_type", sa.String(length=20), nullable=False),
        sa.Column("old_price", COST, nullable=True),
        sa.Column("new_price", COST, nullable=False),
        sa.Column("reason", sa.String(length=50), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("purchase_order_id", sa.Integer(), nullable=True),
        sa.Column("performed_by", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["inventory_suppliers.id"]),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["inventory_purchase_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_price_history_org_id", "inventory_price_history", ["org_id"], unique=False)
    op.create_index("ix_inventory_price_history_item_id", "inventory_price_history", ["item_id"], unique=False)

    # Alerts
    op.create_table(
        "inventory_stock_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("alert_type", sa.String(length=20), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("current_quantity", QTY, nullable=True),
        sa.Column("threshold_quantity", QTY, nullable=True),
        sa.Column("batch_number", sa.String(length=100), nullable=True),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("is_acknowledged", sa.Boolean(), nullable=False),
        sa.Column("acknowledged_by", sa.Integer(), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_by", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_stock_alerts_org_id", "inventory_stock_alerts", ["org_id"], unique=False)
    op.create_index("ix_inventory_stock_alerts_item_id", "inventory_stock_alerts", ["item_id"], unique=False)
    op.create_index("ix_inventory_stock_alerts_is_resolved", "inventory_stock_alerts", ["is_resolved"], unique=False)
    op.create_index(
        "ix_inventory_stock_alerts_item_type_resolved",
        "inventory_stock_alerts",
        ["item_id", "alert_type", "is_resolved"],
        unique=False,
    )


def downgrade():
    op.drop_table("inventory_stock_alerts")
    op.drop_table("inventory_price_history")
    op.drop_table("inventory_item_history")
    op.drop_table("inventory_count_items")
    op.drop_table("inventory_transactions")
    op.drop_table("inventory_counts")
    op.drop_table("inventory_allocations")
    op.drop_table("inventory_purchase_order_items")
    op.drop_table("inventory_purchase_orders")
    op.drop_table("inventory_items")
    op.drop_table("document_sequences")
    op.drop_table("inventory_locations")
    op.drop_table("inventory_suppliers")
    op.drop_table("inventory_units")
    op.drop_table("inventory_categories")
