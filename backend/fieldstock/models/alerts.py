from __future__ import annotations

from ..extensions import db
from fieldstock.time_utils import to_utc_z
from .inventory import QTY
from .reference import decimal_str


class InventoryStockAlert(db.Model):
    """
    Advisory threshold-breach alert raised by alert_service.

    Not a ledger entry. One open (unresolved) alert per (item, alert_type);
    acknowledgement and resolution are one-way.
    """
    __tablename__ = "inventory_stock_alerts"
    __table_args__ = (
        db.Index("ix_inventory_stock_alerts_item_type_resolved", "item_id", "alert_type", "is_resolved"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # low_stock, out_of_stock, overstock, expiring
    alert_type = db.Column(db.String(20), nullable=False)
    # info, warning, critical
    severity = db.Column(db.String(20), nullable=False)
    message = db.Column(db.Text, nullable=False)

    current_quantity = db.Column(QTY, nullable=True)
    threshold_quantity = db.Column(QTY, nullable=True)
    batch_number = db.Column(db.String(100), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    is_acknowledged = db.Column(db.Boolean, nullable=False, default=False)
    acknowledged_by = db.Column(db.Integer, nullable=True)
    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False, index=True)
    resolved_by = db.Column(db.Integer, nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem")

    def __repr__(self) -> str:
        return f"<InventoryStockAlert id={self.id} item_id={self.item_id} type={self.alert_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_id": self.item_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "message": self.message,
            "current_quantity": decimal_str(self.current_quantity),
            "threshold_quantity": decimal_str(self.threshold_quantity),
            "batch_number": self.batch_number,
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
            "is_acknowledged": self.is_acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": to_utc_z(self.acknowledged_at),
            "is_resolved": self.is_resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": to_utc_z(self.resolved_at),
            "resolution_notes": self.resolution_notes,
            "created_at": to_utc_z(self.created_at),
        }
