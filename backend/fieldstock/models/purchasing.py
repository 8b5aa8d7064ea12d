from __future__ import annotations

from ..extensions import db
from fieldstock.time_utils import to_utc_z
from .inventory import QTY, COST
from .reference import decimal_str


MONEY = db.Numeric(15, 2)


class InventoryPurchaseOrder(db.Model):
    """
    Purchase order header.

    LIFECYCLE:
    draft -> pending_approval -> approved -> sent -> partially_received -> received -> closed
    cancelled is reachable from any state before received.

    Rollups: subtotal = sum(line_total); total_amount = subtotal + tax_amount + shipping_cost.
    """
    __tablename__ = "inventory_purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("org_id", "po_number", name="uq_inventory_purchase_orders_org_number"),
        db.Index("ix_inventory_purchase_orders_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    po_number = db.Column(db.String(32), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("inventory_suppliers.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="draft", index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expected_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    ship_to_location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True)

    subtotal = db.Column(MONEY, nullable=False, default=0)
    tax_amount = db.Column(MONEY, nullable=False, default=0)
    shipping_cost = db.Column(MONEY, nullable=False, default=0)
    total_amount = db.Column(MONEY, nullable=False, default=0)

    payment_terms = db.Column(db.String(100), nullable=True)
    # pending, partial, paid
    payment_status = db.Column(db.String(20), nullable=False, default="pending")
    amount_paid = db.Column(MONEY, nullable=False, default=0)
    supplier_invoice_number = db.Column(db.String(100), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "InventoryPurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="InventoryPurchaseOrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryPurchaseOrder id={self.id} po_number={self.po_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "po_number": self.po_number,
            "supplier_id": self.supplier_id,
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "expected_delivery_date": to_utc_z(self.expected_delivery_date),
            "actual_delivery_date": to_utc_z(self.actual_delivery_date),
            "ship_to_location_id": self.ship_to_location_id,
            "subtotal": decimal_str(self.subtotal),
            "tax_amount": decimal_str(self.tax_amount),
            "shipping_cost": decimal_str(self.shipping_cost),
            "total_amount": decimal_str(self.total_amount),
            "payment_terms": self.payment_terms,
            "payment_status": self.payment_status,
            "amount_paid": decimal_str(self.amount_paid),
            "supplier_invoice_number": self.supplier_invoice_number,
            "notes": self.notes,
            "created_by": self.created_by,
            "submitted_at": to_utc_z(self.submitted_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "sent_at": to_utc_z(self.sent_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "closed_at": to_utc_z(self.closed_at),
            "is_deleted": self.is_deleted,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InventoryPurchaseOrderItem(db.Model):
    """Purchase order line. quantity_received only grows and never exceeds quantity_ordered."""
    __tablename__ = "inventory_purchase_order_items"
    __table_args__ = (
        db.UniqueConstraint("purchase_order_id", "item_id", name="uq_inventory_po_items_po_item"),
        db.CheckConstraint("quantity_received <= quantity_ordered", name="ck_inventory_po_items_received_le_ordered"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("inventory_purchase_orders.id"), nullable=False, index=True
    )
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    quantity_ordered = db.Column(QTY, nullable=False)
    quantity_received = db.Column(QTY, nullable=False, default=0)
    unit_cost = db.Column(COST, nullable=False)
    line_total = db.Column(MONEY, nullable=False)

    actual_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase_order = db.relationship("InventoryPurchaseOrder", back_populates="lines")
    item = db.relationship("InventoryItem")

    @property
    def quantity_remaining(self):
        return self.quantity_ordered - self.quantity_received

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "item_id": self.item_id,
            "quantity_ordered": decimal_str(self.quantity_ordered),
            "quantity_received": decimal_str(self.quantity_received),
            "unit_cost": decimal_str(self.unit_cost),
            "line_total": decimal_str(self.line_total),
            "actual_delivery_date": to_utc_z(self.actual_delivery_date),
            "notes": self.notes,
        }
