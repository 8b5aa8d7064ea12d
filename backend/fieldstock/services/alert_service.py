# Overview: Service-layer operations for stock alerts; encapsulates business logic and database work.

"""
Stock Alert Monitor

Alerts are a derived, advisory view over item state. Evaluation is pure
with respect to quantities: it reads items and the ledger and only ever
inserts alert rows.

RULES:
- out_of_stock (critical): on-hand == 0
- low_stock (warning): 0 < on-hand <= reorder_level
- overstock (info): max_stock_level set and on-hand > max_stock_level
- expiring (warning, critical once expired): batch/serial tracked lots with
  stock remaining whose expiration date falls inside the horizon
- At most one open (unresolved) alert per (item, type[, lot]).
- Alerts are never auto-closed when the condition clears; a resolved alert
  may be raised again if the condition recurs.

LIFECYCLE:
open -> acknowledged -> resolved, or open -> resolved directly.
Both steps are one-way.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import InventoryItem, InventoryStockAlert, InventoryTransaction
from ..signals import alert_raised
from fieldstock.time_utils import days_from_today, utcnow, utctoday
from .concurrency import lock_for_update, unit_of_work


ALERT_LOW_STOCK = "low_stock"
ALERT_OUT_OF_STOCK = "out_of_stock"
ALERT_OVERSTOCK = "overstock"
ALERT_EXPIRING = "expiring"
ALERT_TYPES = {ALERT_LOW_STOCK, ALERT_OUT_OF_STOCK, ALERT_OVERSTOCK, ALERT_EXPIRING}

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"
SEVERITIES = {SEVERITY_INFO, SEVERITY_WARNING, SEVERITY_CRITICAL}


def _open_alert_exists(item_id: int, alert_type: str, batch_number: str | None = None) -> bool:
    query = db.session.query(InventoryStockAlert.id).filter(
        InventoryStockAlert.item_id == item_id,
        InventoryStockAlert.alert_type == alert_type,
        InventoryStockAlert.is_resolved.is_(False),
    )
    if alert_type == ALERT_EXPIRING:
        query = query.filter(InventoryStockAlert.batch_number == batch_number)
    return query.first() is not None


def expiring_lots(item: InventoryItem, horizon_days: int | None = None) -> list[dict]:
    """
    Lots (batch number, or serial number when no batch) with remaining stock
    whose expiration date is within horizon_days from today.

    Outflows booked without a lot (allocation issues, count adjustments) are
    taken first-expiry-first-out, so the item's current on-hand is spread over
    the lots starting from the latest expiry. A lot only reports the share of
    on-hand it still holds.
    """
    if not (item.track_by_batch or item.track_by_serial):
        return []
    if horizon_days is None:
        horizon_days = current_app.config.get("INVENTORY_EXPIRY_HORIZON_DAYS", 30)

    on_hand = Decimal(item.quantity_on_hand or 0)
    if on_hand <= 0:
        return []

    lot_key = func.coalesce(InventoryTransaction.batch_number, InventoryTransaction.serial_number)
    rows = (
        db.session.query(
            lot_key.label("lot"),
            func.coalesce(func.sum(InventoryTransaction.quantity), 0).label("remaining"),
            func.min(InventoryTransaction.expiration_date).label("expires"),
        )
        .filter(InventoryTransaction.item_id == item.id, lot_key.isnot(None))
        .group_by(lot_key)
        .all()
    )

    # Lots without an expiration date never expire and keep their stock longest
    stocked = [row for row in rows if Decimal(row.remaining or 0) > 0]
    ordered = [row for row in stocked if row.expires is None] + sorted(
        (row for row in stocked if row.expires is not None),
        key=lambda row: (row.expires, row.lot),
        reverse=True,
    )

    today = utctoday()
    horizon = days_from_today(horizon_days)
    unassigned = on_hand
    lots = []
    for row in ordered:
        share = min(Decimal(row.remaining), unassigned)
        unassigned -= share
        if share <= 0 or row.expires is None:
            continue
        if row.expires <= horizon:
            lots.append({
                "lot": row.lot,
                "remaining": share,
                "expiration_date": row.expires,
                "expired": row.expires < today,
            })
    lots.sort(key=lambda lot: (lot["expiration_date"], lot["lot"]))
    return lots


def _conditions(item: InventoryItem) -> list[dict]:
    on_hand = Decimal(item.quantity_on_hand or 0)
    reorder_level = Decimal(item.reorder_level or 0)
    found = []

    if on_hand == 0:
        found.append({
            "alert_type": ALERT_OUT_OF_STOCK,
            "severity": SEVERITY_CRITICAL,
            "message": f"{item.name} ({item.item_code}) is out of stock",
            "threshold_quantity": reorder_level,
        })
    elif on_hand <= reorder_level:
        found.append({
            "alert_type": ALERT_LOW_STOCK,
            "severity": SEVERITY_WARNING,
            "message": f"{item.name} ({item.item_code}) is at or below its reorder level "
                       f"({on_hand} <= {reorder_level})",
            "threshold_quantity": reorder_level,
        })

    if item.max_stock_level is not None and on_hand > Decimal(item.max_stock_level):
        found.append({
            "alert_type": ALERT_OVERSTOCK,
            "severity": SEVERITY_INFO,
            "message": f"{item.name} ({item.item_code}) exceeds its maximum stock level "
                       f"({on_hand} > {item.max_stock_level})",
            "threshold_quantity": Decimal(item.max_stock_level),
        })

    for lot in expiring_lots(item):
        verb = "expired on" if lot["expired"] else "expires on"
        found.append({
            "alert_type": ALERT_EXPIRING,
            "severity": SEVERITY_CRITICAL if lot["expired"] else SEVERITY_WARNING,
            "message": f"{item.name} lot {lot['lot']} ({lot['remaining']} remaining) "
                       f"{verb} {lot['expiration_date'].isoformat()}",
            "batch_number": lot["lot"],
            "expiration_date": lot["expiration_date"],
            "current_quantity": lot["remaining"],
        })

    return found


def evaluate_item(item: InventoryItem) -> list[InventoryStockAlert]:
    """
    Evaluate one item and insert any missing open alerts.

    Runs inside the caller's unit of work (flush only). Also called by the
    ledger after each append when INVENTORY_ALERTS_ON_LEDGER is on.
    """
    if item.is_deleted or not item.is_active:
        return []

    created = []
    for condition in _conditions(item):
        if _open_alert_exists(item.id, condition["alert_type"], condition.get("batch_number")):
            continue
        alert = InventoryStockAlert(
            org_id=item.org_id,
            item_id=item.id,
            alert_type=condition["alert_type"],
            severity=condition["severity"],
            message=condition["message"],
            current_quantity=condition.get("current_quantity", item.quantity_on_hand),
            threshold_quantity=condition.get("threshold_quantity"),
            batch_number=condition.get("batch_number"),
            expiration_date=condition.get("expiration_date"),
        )
        db.session.add(alert)
        created.append(alert)

    if created:
        db.session.flush()
        for alert in created:
            current_app.logger.info(
                "Raised %s alert %s for item %s", alert.alert_type, alert.id, item.id
            )
            alert_raised.send(item, alert=alert)
    return created


def run_alert_check(org_id: int | None = None, batch_size: int | None = None) -> dict:
    """
    Sweep active items and raise missing alerts.

    Items are processed in id-ordered batches, one transaction per batch, so
    a large catalogue never holds one unbounded transaction.
    """
    if batch_size is None:
        batch_size = current_app.config.get("INVENTORY_BATCH_SIZE", 200)

    checked = 0
    created = 0
    last_id = 0
    while True:
        with unit_of_work():
            query = db.session.query(InventoryItem).filter(
                InventoryItem.id > last_id,
                InventoryItem.is_deleted.is_(False),
                InventoryItem.is_active.is_(True),
            )
            if org_id is not None:
                query = query.filter(InventoryItem.org_id == org_id)
            batch = query.order_by(InventoryItem.id.asc()).limit(batch_size).all()
            for item in batch:
                created += len(evaluate_item(item))
            checked += len(batch)
            if batch:
                last_id = batch[-1].id
        if len(batch) < batch_size:
            break

    current_app.logger.info("Alert check: %s items checked, %s alerts created", checked, created)
    return {"items_checked": checked, "alerts_created": created}


def get_alert(org_id: int, alert_id: int) -> InventoryStockAlert:
    alert = db.session.query(InventoryStockAlert).filter_by(id=alert_id, org_id=org_id).first()
    if alert is None:
        raise NotFoundError(f"Alert {alert_id} not found")
    return alert


def _lock_alert(org_id: int, alert_id: int) -> InventoryStockAlert:
    alert = lock_for_update(
        db.session.query(InventoryStockAlert).filter_by(id=alert_id, org_id=org_id)
    ).first()
    if alert is None:
        raise NotFoundError(f"Alert {alert_id} not found")
    return alert


def acknowledge_alert(org_id: int, alert_id: int, user_id: int | None = None) -> InventoryStockAlert:
    with unit_of_work():
        alert = _lock_alert(org_id, alert_id)
        if alert.is_resolved:
            raise InvalidTransitionError(f"Alert {alert_id} is already resolved")
        if alert.is_acknowledged:
            raise InvalidTransitionError(f"Alert {alert_id} is already acknowledged")
        alert.is_acknowledged = True
        alert.acknowledged_by = user_id
        alert.acknowledged_at = utcnow()
    return alert


def resolve_alert(org_id: int, alert_id: int, user_id: int | None = None,
                  notes: str | None = None) -> InventoryStockAlert:
    """Resolve an alert. Acknowledgement is not required first."""
    with unit_of_work():
        alert = _lock_alert(org_id, alert_id)
        if alert.is_resolved:
            raise InvalidTransitionError(f"Alert {alert_id} is already resolved")
        alert.is_resolved = True
        alert.resolved_by = user_id
        alert.resolved_at = utcnow()
        alert.resolution_notes = notes
    return alert


def list_alerts(
    org_id: int,
    *,
    item_id: int | None = None,
    alert_type: str | None = None,
    severity: str | None = None,
    is_resolved: bool | None = None,
    is_acknowledged: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryStockAlert], int]:
    query = db.session.query(InventoryStockAlert).filter(InventoryStockAlert.org_id == org_id)
    if item_id:
        query = query.filter(InventoryStockAlert.item_id == item_id)
    if alert_type:
        if alert_type not in ALERT_TYPES:
            raise ValidationError(f"Invalid alert type: {alert_type}")
        query = query.filter(InventoryStockAlert.alert_type == alert_type)
    if severity:
        if severity not in SEVERITIES:
            raise ValidationError(f"Invalid severity: {severity}")
        query = query.filter(InventoryStockAlert.severity == severity)
    if is_resolved is not None:
        query = query.filter(InventoryStockAlert.is_resolved.is_(is_resolved))
    if is_acknowledged is not None:
        query = query.filter(InventoryStockAlert.is_acknowledged.is_(is_acknowledged))

    total = query.count()
    alerts = query.order_by(InventoryStockAlert.id.desc()).offset(offset).limit(limit).all()
    return alerts, total
