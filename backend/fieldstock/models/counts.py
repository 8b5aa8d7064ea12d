from __future__ import annotations

from ..extensions import db
from fieldstock.time_utils import to_utc_z
from .inventory import QTY, COST
from .reference import decimal_str


class InventoryCount(db.Model):
    """
    Physical count session.

    LIFECYCLE:
    planned -> in_progress -> completed
    planned | in_progress -> cancelled (no adjustments)

    system_quantity on each line is snapshotted when the count starts;
    completion appends one adjustment per line with non-zero variance.
    """
    __tablename__ = "inventory_counts"
    __table_args__ = (
        db.UniqueConstraint("org_id", "count_number", name="uq_inventory_counts_org_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    count_number = db.Column(db.String(32), nullable=False)

    # full, cycle, spot
    count_type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="planned", index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True)

    count_date = db.Column(db.DateTime(timezone=True), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    total_variance_quantity = db.Column(QTY, nullable=True)
    total_variance_cost = db.Column(db.Numeric(15, 2), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    completed_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "InventoryCountItem",
        back_populates="count",
        cascade="all, delete-orphan",
        order_by="InventoryCountItem.item_id",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "count_number": self.count_number,
            "count_type": self.count_type,
            "status": self.status,
            "location_id": self.location_id,
            "count_date": to_utc_z(self.count_date),
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "total_variance_quantity": decimal_str(self.total_variance_quantity),
            "total_variance_cost": decimal_str(self.total_variance_cost),
            "notes": self.notes,
            "created_by": self.created_by,
            "completed_by": self.completed_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InventoryCountItem(db.Model):
    __tablename__ = "inventory_count_items"
    __table_args__ = (
        db.UniqueConstraint("count_id", "item_id", name="uq_inventory_count_items_count_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    count_id = db.Column(db.Integer, db.ForeignKey("inventory_counts.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    system_quantity = db.Column(QTY, nullable=True)
    counted_quantity = db.Column(QTY, nullable=True)
    variance = db.Column(QTY, nullable=True)
    variance_percentage = db.Column(db.Numeric(9, 2), nullable=True)
    unit_cost = db.Column(COST, nullable=True)
    variance_cost = db.Column(db.Numeric(15, 2), nullable=True)

    counted_by = db.Column(db.Integer, nullable=True)
    counted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    adjustment_transaction_id = db.Column(
        db.Integer, db.ForeignKey("inventory_transactions.id"), nullable=True
    )
    notes = db.Column(db.Text, nullable=True)

    count = db.relationship("InventoryCount", back_populates="lines")
    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "count_id": self.count_id,
            "item_id": self.item_id,
            "system_quantity": decimal_str(self.system_quantity),
            "counted_quantity": decimal_str(self.counted_quantity),
            "variance": decimal_str(self.variance),
            "variance_percentage": decimal_str(self.variance_percentage),
            "unit_cost": decimal_str(self.unit_cost),
            "variance_cost": decimal_str(self.variance_cost),
            "counted_by": self.counted_by,
            "counted_at": to_utc_z(self.counted_at),
            "adjustment_transaction_id": self.adjustment_transaction_id,
            "notes": self.notes,
        }
