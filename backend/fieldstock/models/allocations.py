from __future__ import annotations

from ..extensions import db
from fieldstock.time_utils import to_utc_z
from .inventory import QTY
from .reference import decimal_str


class InventoryAllocation(db.Model):
    """
    Reservation of item quantity for a Job or a Bid (exactly one is set).

    LIFECYCLE:
    allocated -> issued -> partially_used | fully_used | returned
    allocated -> cancelled (never issued)

    quantity_used + quantity_returned <= quantity_allocated
    """
    __tablename__ = "inventory_allocations"
    __table_args__ = (
        db.CheckConstraint(
            "(job_id IS NOT NULL AND bid_id IS NULL) OR (job_id IS NULL AND bid_id IS NOT NULL)",
            name="ck_inventory_allocations_job_xor_bid",
        ),
        db.CheckConstraint(
            "quantity_used + quantity_returned <= quantity_allocated",
            name="ck_inventory_allocations_conservation",
        ),
        db.Index("ix_inventory_allocations_item_status", "item_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    job_id = db.Column(db.String(64), nullable=True, index=True)
    bid_id = db.Column(db.String(64), nullable=True, index=True)

    quantity_allocated = db.Column(QTY, nullable=False)
    quantity_used = db.Column(QTY, nullable=False, default=0)
    quantity_returned = db.Column(QTY, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default="allocated", index=True)

    allocation_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expected_use_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_use_date = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    allocated_by = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("InventoryItem")

    @property
    def quantity_outstanding(self):
        """Issued quantity neither recorded as used nor returned."""
        return self.quantity_allocated - self.quantity_used - self.quantity_returned

    def __repr__(self) -> str:
        return f"<InventoryAllocation id={self.id} item_id={self.item_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_id": self.item_id,
            "job_id": self.job_id,
            "bid_id": self.bid_id,
            "quantity_allocated": decimal_str(self.quantity_allocated),
            "quantity_used": decimal_str(self.quantity_used),
            "quantity_returned": decimal_str(self.quantity_returned),
            "status": self.status,
            "allocation_date": to_utc_z(self.allocation_date),
            "expected_use_date": to_utc_z(self.expected_use_date),
            "actual_use_date": to_utc_z(self.actual_use_date),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "allocated_by": self.allocated_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
