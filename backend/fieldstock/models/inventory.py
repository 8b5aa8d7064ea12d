from __future__ import annotations

from ..extensions import db
from fieldstock.time_utils import to_utc_z, to_iso_date
from .reference import decimal_str


QTY = db.Numeric(12, 2)
COST = db.Numeric(14, 4)


class InventoryItem(db.Model):
    """
    Stock-keeping unit.

    MULTI-TENANT: Items are scoped to organizations via org_id.
    item_code is unique within an organization.

    QUANTITY PROJECTION:
    quantity_on_hand / quantity_allocated / quantity_available /
    quantity_on_order are a cache of the transaction ledger, allocations and
    open purchase orders. They are written only by ledger_service; every
    other service goes through it.

    - quantity_on_hand == quantity_allocated + quantity_available
    - quantity_available >= 0, quantity_allocated >= 0, quantity_on_order >= 0

    STATUS:
    status is derived (item_service.derive_status) from on-hand and
    reorder_level. status_override ("on_order" | "discontinued") is layered
    on top and takes precedence.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("org_id", "item_code", name="uq_inventory_items_org_code"),
        db.Index("ix_inventory_items_org_status", "org_id", "status"),
        db.Index("ix_inventory_items_org_deleted", "org_id", "is_deleted"),
        db.CheckConstraint("quantity_available >= 0", name="ck_inventory_items_available_nonneg"),
        db.CheckConstraint("quantity_allocated >= 0", name="ck_inventory_items_allocated_nonneg"),
        db.CheckConstraint("quantity_on_order >= 0", name="ck_inventory_items_on_order_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)

    item_code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("inventory_categories.id"), nullable=True, index=True)
    unit_of_measure_id = db.Column(db.Integer, db.ForeignKey("inventory_units.id"), nullable=True)
    primary_supplier_id = db.Column(db.Integer, db.ForeignKey("inventory_suppliers.id"), nullable=True, index=True)
    primary_location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True, index=True)

    # Costing
    unit_cost = db.Column(COST, nullable=False, default=0)
    average_cost = db.Column(COST, nullable=True)
    last_purchase_price = db.Column(COST, nullable=True)
    selling_price = db.Column(COST, nullable=True)

    # Quantity projection (ledger_service only)
    quantity_on_hand = db.Column(QTY, nullable=False, default=0)
    quantity_allocated = db.Column(QTY, nullable=False, default=0)
    quantity_available = db.Column(QTY, nullable=False, default=0)
    quantity_on_order = db.Column(QTY, nullable=False, default=0)

    # Reorder policy
    reorder_level = db.Column(QTY, nullable=False, default=0)
    reorder_quantity = db.Column(QTY, nullable=False, default=0)
    max_stock_level = db.Column(QTY, nullable=True)

    # Identification
    manufacturer = db.Column(db.String(255), nullable=True)
    model_number = db.Column(db.String(100), nullable=True)
    part_number = db.Column(db.String(100), nullable=True)
    barcode = db.Column(db.String(100), nullable=True, index=True)

    track_by_serial = db.Column(db.Boolean, nullable=False, default=False)
    track_by_batch = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(20), nullable=False, default="out_of_stock", index=True)
    status_override = db.Column(db.String(20), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    last_restocked_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_counted_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category")
    unit_of_measure = db.relationship("UnitOfMeasure")
    primary_supplier = db.relationship("Supplier")
    primary_location = db.relationship("Location")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} item_code={self.item_code!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_code": self.item_code,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "unit_of_measure_id": self.unit_of_measure_id,
            "primary_supplier_id": self.primary_supplier_id,
            "primary_location_id": self.primary_location_id,
            "unit_cost": decimal_str(self.unit_cost),
            "average_cost": decimal_str(self.average_cost),
            "last_purchase_price": decimal_str(self.last_purchase_price),
            "selling_price": decimal_str(self.selling_price),
            "quantity_on_hand": decimal_str(self.quantity_on_hand),
            "quantity_allocated": decimal_str(self.quantity_allocated),
            "quantity_available": decimal_str(self.quantity_available),
            "quantity_on_order": decimal_str(self.quantity_on_order),
            "reorder_level": decimal_str(self.reorder_level),
            "reorder_quantity": decimal_str(self.reorder_quantity),
            "max_stock_level": decimal_str(self.max_stock_level),
            "manufacturer": self.manufacturer,
            "model_number": self.model_number,
            "part_number": self.part_number,
            "barcode": self.barcode,
            "track_by_serial": self.track_by_serial,
            "track_by_batch": self.track_by_batch,
            "status": self.status,
            "status_override": self.status_override,
            "is_active": self.is_active,
            "is_deleted": self.is_deleted,
            "last_restocked_date": to_utc_z(self.last_restocked_date),
            "last_counted_date": to_utc_z(self.last_counted_date),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Immutable ledger row.

    APPEND-ONLY: rows are inserted by ledger_service and never updated or
    deleted; corrections are compensating rows. id order is the canonical
    per-item history, and balance_after is on-hand after applying the row.

    A transfer is two rows sharing transfer_group: -q at from_location_id
    and +q at to_location_id. location_id is the location whose per-location
    balance the row moves.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.UniqueConstraint("org_id", "transaction_number", name="uq_inventory_transactions_org_number"),
        db.Index("ix_inventory_transactions_item_seq", "item_id", "id"),
        db.Index("ix_inventory_transactions_item_batch", "item_id", "batch_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    transaction_number = db.Column(db.String(32), nullable=False)
    transaction_type = db.Column(db.String(20), nullable=False, index=True)

    # Signed: receipt/return/initial_stock > 0, issue/write_off < 0
    quantity = db.Column(QTY, nullable=False)
    unit_cost = db.Column(COST, nullable=True)
    total_cost = db.Column(db.Numeric(15, 2), nullable=True)
    balance_after = db.Column(QTY, nullable=False)

    location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True, index=True)
    from_location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True)
    transfer_group = db.Column(db.String(32), nullable=True, index=True)

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("inventory_purchase_orders.id"), nullable=True, index=True)
    allocation_id = db.Column(db.Integer, db.ForeignKey("inventory_allocations.id"), nullable=True, index=True)
    count_id = db.Column(db.Integer, db.ForeignKey("inventory_counts.id"), nullable=True)
    job_id = db.Column(db.String(64), nullable=True, index=True)
    bid_id = db.Column(db.String(64), nullable=True, index=True)

    batch_number = db.Column(db.String(100), nullable=True)
    serial_number = db.Column(db.String(100), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    reference_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    performed_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("InventoryItem")

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} {self.transaction_type} "
            f"item_id={self.item_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_id": self.item_id,
            "transaction_number": self.transaction_number,
            "transaction_type": self.transaction_type,
            "quantity": decimal_str(self.quantity),
            "unit_cost": decimal_str(self.unit_cost),
            "total_cost": decimal_str(self.total_cost),
            "balance_after": decimal_str(self.balance_after),
            "location_id": self.location_id,
            "from_location_id": self.from_location_id,
            "to_location_id": self.to_location_id,
            "transfer_group": self.transfer_group,
            "purchase_order_id": self.purchase_order_id,
            "allocation_id": self.allocation_id,
            "count_id": self.count_id,
            "job_id": self.job_id,
            "bid_id": self.bid_id,
            "batch_number": self.batch_number,
            "serial_number": self.serial_number,
            "expiration_date": to_iso_date(self.expiration_date),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryItemHistory(db.Model):
    """Audit trail of item registry edits (create, field change, soft delete)."""
    __tablename__ = "inventory_item_history"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # created, updated, deleted
    action = db.Column(db.String(20), nullable=False)
    field_changed = db.Column(db.String(100), nullable=True)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)

    performed_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "action": self.action,
            "field_changed": self.field_changed,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryPriceHistory(db.Model):
    __tablename__ = "inventory_price_history"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # unit_cost, selling_price, purchase_price
    price_type = db.Column(db.String(20), nullable=False)
    old_price = db.Column(COST, nullable=True)
    new_price = db.Column(COST, nullable=False)
    # manual_update, purchase_order
    reason = db.Column(db.String(50), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("inventory_suppliers.id"), nullable=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("inventory_purchase_orders.id"), nullable=True)

    performed_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "price_type": self.price_type,
            "old_price": decimal_str(self.old_price),
            "new_price": decimal_str(self.new_price),
            "reason": self.reason,
            "supplier_id": self.supplier_id,
            "purchase_order_id": self.purchase_order_id,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }
