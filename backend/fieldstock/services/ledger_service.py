# Overview: Service-layer operations for the inventory transaction ledger; encapsulates business logic and database work.

"""
Inventory Ledger Invariants (authoritative)

Ledger:
- InventoryTransaction rows are append-only. Nothing updates or deletes them;
  a correction is a compensating row.
- Row order (id) is the canonical per-item history.
- balance_after = on-hand before the row + quantity; replaying quantities
  from zero in id order reproduces every balance_after and the current
  quantity_on_hand.

Sign convention:
- receipt, return, initial_stock: quantity > 0
- issue, write_off: quantity < 0
- adjustment: non-zero, either sign
- transfer: two rows sharing transfer_group, -q at the source location and
  +q at the destination; net on-hand change is zero.

Projection:
- _apply_projection() is the only code that writes an item's quantity
  fields. Ledger appends, reservations (allocations) and on-order changes
  (purchase orders) all go through it.
- After every application:
    on_hand == allocated + available, available >= 0, allocated >= 0, on_order >= 0
- Violations raise InsufficientStockError (stock) or InvalidOperationError
  (reservation/on-order bookkeeping) and the unit of work rolls back.

Locking:
- *_inner functions expect the caller to hold the item row lock and to own
  the unit of work. Public functions lock, run the inner step and commit.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ..models import (
    InventoryAllocation,
    InventoryItem,
    InventoryPurchaseOrder,
    InventoryPurchaseOrderItem,
    InventoryTransaction,
    Location,
)
from ..signals import ledger_appended
from ..validation import parse_cost, parse_date, parse_quantity, quantize_cost, quantize_money
from fieldstock.time_utils import utcnow
from .concurrency import unit_of_work
from .document_service import TRANSACTION_NUMBERS, next_document_number
from .item_service import (
    STATUS_ON_ORDER,
    derive_status,
    get_item,
    get_item_for_update,
    record_price_change,
)
from . import alert_service


TYPE_RECEIPT = "receipt"
TYPE_ISSUE = "issue"
TYPE_ADJUSTMENT = "adjustment"
TYPE_TRANSFER = "transfer"
TYPE_RETURN = "return"
TYPE_WRITE_OFF = "write_off"
TYPE_INITIAL_STOCK = "initial_stock"

TRANSACTION_TYPES = {
    TYPE_RECEIPT,
    TYPE_ISSUE,
    TYPE_ADJUSTMENT,
    TYPE_TRANSFER,
    TYPE_RETURN,
    TYPE_WRITE_OFF,
    TYPE_INITIAL_STOCK,
}
POSITIVE_TYPES = {TYPE_RECEIPT, TYPE_RETURN, TYPE_INITIAL_STOCK}
NEGATIVE_TYPES = {TYPE_ISSUE, TYPE_WRITE_OFF}
# Corrections that may be clamped when INVENTORY_CLAMP_CORRECTIONS_TO_ZERO is on
CORRECTION_TYPES = {TYPE_ADJUSTMENT, TYPE_WRITE_OFF}

# Purchase order states whose unreceived remainder counts as on-order
ON_ORDER_PO_STATUSES = ("approved", "sent", "partially_received")

ZERO = Decimal("0")


def _validate_sign(transaction_type: str, quantity: Decimal) -> None:
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {transaction_type}")
    if transaction_type == TYPE_TRANSFER:
        raise ValidationError("Transfers are recorded with transfer_stock")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")
    if transaction_type in POSITIVE_TYPES and quantity < 0:
        raise ValidationError(f"{transaction_type} quantity must be positive")
    if transaction_type in NEGATIVE_TYPES and quantity > 0:
        raise ValidationError(f"{transaction_type} quantity must be negative")


def _apply_projection(
    item: InventoryItem,
    *,
    on_hand_delta: Decimal = ZERO,
    allocated_delta: Decimal = ZERO,
    on_order_delta: Decimal = ZERO,
) -> None:
    """
    The single writer of an item's quantity projection.

    available is always recomputed as on_hand - allocated, so the
    on_hand == allocated + available identity holds by construction.
    """
    on_hand = Decimal(item.quantity_on_hand or 0) + on_hand_delta
    allocated = Decimal(item.quantity_allocated or 0) + allocated_delta
    on_order = Decimal(item.quantity_on_order or 0) + on_order_delta
    available = on_hand - allocated

    if on_hand < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {item.item_code}: on-hand would be {on_hand}",
            details={"item_id": item.id, "quantity_on_hand": str(item.quantity_on_hand)},
        )
    if available < 0:
        raise InsufficientStockError(
            f"Insufficient available stock for {item.item_code}: available would be {available}",
            details={"item_id": item.id, "quantity_available": str(item.quantity_available)},
        )
    if allocated < 0:
        raise InvalidOperationError(f"Reservation release exceeds allocated quantity for {item.item_code}")
    if on_order < 0:
        raise InvalidOperationError(f"On-order reduction exceeds on-order quantity for {item.item_code}")

    item.quantity_on_hand = on_hand
    item.quantity_allocated = allocated
    item.quantity_available = available
    item.quantity_on_order = on_order

    # on_order override lives exactly as long as stock is on order
    if on_order == 0 and item.status_override == STATUS_ON_ORDER:
        item.status_override = None

    item.status = derive_status(item)


# =============================================================================
# Reservation / on-order bookkeeping (no ledger rows)
# =============================================================================

def reserve_quantity(item: InventoryItem, quantity: Decimal) -> None:
    """Move quantity from available to allocated. Caller holds the item lock."""
    if quantity > Decimal(item.quantity_available or 0):
        raise InsufficientStockError(
            f"Cannot allocate {quantity} of {item.item_code}: only {item.quantity_available} available",
            details={"item_id": item.id, "requested": str(quantity),
                     "quantity_available": str(item.quantity_available)},
        )
    _apply_projection(item, allocated_delta=quantity)


def release_reservation(item: InventoryItem, quantity: Decimal) -> None:
    _apply_projection(item, allocated_delta=-quantity)


def add_on_order(item: InventoryItem, quantity: Decimal) -> None:
    """Expected supply from an approved purchase order line."""
    _apply_projection(item, on_order_delta=quantity)
    if item.status_override is None:
        item.status_override = STATUS_ON_ORDER
        item.status = derive_status(item)


def remove_on_order(item: InventoryItem, quantity: Decimal) -> None:
    _apply_projection(item, on_order_delta=-quantity)


# =============================================================================
# Ledger append
# =============================================================================

def _has_history(item: InventoryItem) -> bool:
    return db.session.query(InventoryTransaction.id).filter_by(item_id=item.id).first() is not None


def _new_row(item: InventoryItem, transaction_type: str, quantity: Decimal, balance_after: Decimal,
             unit_cost: Decimal | None, performed_by: int | None, **fields) -> InventoryTransaction:
    total_cost = quantize_money(abs(quantity) * unit_cost) if unit_cost is not None else None
    row = InventoryTransaction(
        org_id=item.org_id,
        item_id=item.id,
        transaction_number=next_document_number(org_id=item.org_id, document_type=TRANSACTION_NUMBERS),
        transaction_type=transaction_type,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=total_cost,
        balance_after=balance_after,
        performed_by=performed_by,
        **fields,
    )
    db.session.add(row)
    return row


def _update_costing_on_receipt(item: InventoryItem, quantity: Decimal, unit_cost: Decimal,
                               performed_by: int | None, purchase_order_id: int | None,
                               supplier_id: int | None, *, purchased: bool = True) -> None:
    """Moving average cost over the stock on hand before this receipt."""
    on_hand_before = Decimal(item.quantity_on_hand or 0)
    previous_avg = item.average_cost if item.average_cost is not None else item.unit_cost
    previous_avg = Decimal(previous_avg or 0)
    total_qty = on_hand_before + quantity
    if total_qty > 0:
        item.average_cost = quantize_cost((on_hand_before * previous_avg + quantity * unit_cost) / total_qty)

    if not purchased:
        return

    record_price_change(
        item,
        price_type="purchase_price",
        old_price=item.last_purchase_price,
        new_price=unit_cost,
        reason="purchase_order" if purchase_order_id else "manual_update",
        performed_by=performed_by,
        supplier_id=supplier_id,
        purchase_order_id=purchase_order_id,
    )
    item.last_purchase_price = unit_cost


def append_transaction_inner(
    item: InventoryItem,
    transaction_type: str,
    quantity: Decimal,
    *,
    performed_by: int | None = None,
    unit_cost: Decimal | None = None,
    location_id: int | None = None,
    purchase_order_id: int | None = None,
    supplier_id: int | None = None,
    allocation: InventoryAllocation | None = None,
    count_id: int | None = None,
    job_id: str | None = None,
    bid_id: str | None = None,
    batch_number: str | None = None,
    serial_number: str | None = None,
    expiration_date=None,
    reference_number: str | None = None,
    notes: str | None = None,
) -> InventoryTransaction:
    """
    Append one ledger row and apply it to the projection.

    Caller holds the item lock and owns the unit of work.

    allocation: an issue that consumes this reservation (on-hand and
    allocated drop together); without it an issue draws on available stock.
    purchase_order_id on a receipt lowers on-order by the received quantity.
    """
    quantity = Decimal(quantity)
    _validate_sign(transaction_type, quantity)

    if transaction_type == TYPE_INITIAL_STOCK and _has_history(item):
        raise InvalidOperationError(
            f"Item {item.item_code} already has ledger history; use a receipt or adjustment"
        )

    if allocation is not None and transaction_type != TYPE_ISSUE:
        raise InvalidOperationError("Only issues consume an allocation")

    clamp = current_app.config.get("INVENTORY_CLAMP_CORRECTIONS_TO_ZERO", False)
    available = Decimal(item.quantity_available or 0)

    on_hand_delta = quantity
    allocated_delta = ZERO
    on_order_delta = ZERO

    if transaction_type == TYPE_ISSUE and allocation is not None:
        allocated_delta = quantity
    elif quantity < 0 and -quantity > available:
        if clamp and transaction_type in CORRECTION_TYPES and available > 0:
            current_app.logger.info(
                "Clamping %s on item %s from %s to %s", transaction_type, item.id, quantity, -available
            )
            quantity = -available
            on_hand_delta = quantity
        else:
            raise InsufficientStockError(
                f"Insufficient available stock for {item.item_code}: "
                f"requested {-quantity}, available {available}",
                details={"item_id": item.id, "requested": str(-quantity), "quantity_available": str(available)},
            )

    if transaction_type == TYPE_RECEIPT and purchase_order_id is not None:
        on_order_delta = -min(quantity, Decimal(item.quantity_on_order or 0))

    if unit_cost is not None:
        unit_cost = quantize_cost(unit_cost)
    elif transaction_type not in (TYPE_RECEIPT, TYPE_INITIAL_STOCK):
        unit_cost = item.average_cost if item.average_cost is not None else item.unit_cost

    if transaction_type in (TYPE_RECEIPT, TYPE_INITIAL_STOCK):
        if unit_cost is not None:
            _update_costing_on_receipt(
                item, quantity, unit_cost, performed_by, purchase_order_id, supplier_id,
                purchased=transaction_type == TYPE_RECEIPT,
            )
        if transaction_type == TYPE_RECEIPT:
            item.last_restocked_date = utcnow()

    balance_after = Decimal(item.quantity_on_hand or 0) + quantity

    row = _new_row(
        item,
        transaction_type,
        quantity,
        balance_after,
        unit_cost,
        performed_by,
        location_id=location_id if location_id is not None else item.primary_location_id,
        purchase_order_id=purchase_order_id,
        allocation_id=allocation.id if allocation is not None else None,
        count_id=count_id,
        job_id=job_id if job_id is not None else (allocation.job_id if allocation is not None else None),
        bid_id=bid_id if bid_id is not None else (allocation.bid_id if allocation is not None else None),
        batch_number=batch_number,
        serial_number=serial_number,
        expiration_date=expiration_date,
        reference_number=reference_number,
        notes=notes,
    )

    _apply_projection(
        item,
        on_hand_delta=on_hand_delta,
        allocated_delta=allocated_delta,
        on_order_delta=on_order_delta,
    )
    db.session.flush()

    if current_app.config.get("INVENTORY_ALERTS_ON_LEDGER", True):
        alert_service.evaluate_item(item)

    ledger_appended.send(item, transactions=[row])
    current_app.logger.info(
        "Ledger %s %s item=%s qty=%s balance_after=%s",
        row.transaction_number, transaction_type, item.id, quantity, balance_after,
    )
    return row


def _validate_location(org_id: int, location_id: int | None, field: str) -> None:
    if location_id is None:
        return
    location = db.session.get(Location, location_id)
    if location is None or location.org_id != org_id or location.is_deleted:
        raise NotFoundError(f"{field} {location_id} not found")


def append_transaction(
    *,
    org_id: int,
    item_id: int,
    transaction_type: str,
    quantity,
    performed_by: int | None = None,
    unit_cost=None,
    location_id: int | None = None,
    job_id: str | None = None,
    bid_id: str | None = None,
    batch_number: str | None = None,
    serial_number: str | None = None,
    expiration_date=None,
    reference_number: str | None = None,
    notes: str | None = None,
) -> InventoryTransaction:
    """
    Record a stock movement as one atomic unit of work.

    quantity is signed (see module docstring). Receipts recorded here are
    not linked to a purchase order; purchase order receipts go through
    purchase_order_service.receive_purchase_order so line quantities and
    on-order stay consistent. Allocation issues/returns go through
    allocation_service.

    Raises:
        NotFoundError: unknown item or location
        ValidationError: wrong sign / malformed quantity
        InvalidOperationError: initial_stock on an item with history
        InsufficientStockError: would drive on-hand or available below zero
    """
    qty = parse_quantity(quantity, "quantity", allow_negative=True)
    cost = parse_cost(unit_cost) if unit_cost is not None else None
    expires = parse_date(expiration_date, "expiration_date")

    with unit_of_work():
        item = get_item_for_update(org_id, item_id)
        _validate_location(org_id, location_id, "location_id")
        if (batch_number or expires) and not (item.track_by_batch or item.track_by_serial):
            raise ValidationError(f"Item {item.item_code} is not batch or serial tracked")
        row = append_transaction_inner(
            item,
            transaction_type,
            qty,
            performed_by=performed_by,
            unit_cost=cost,
            location_id=location_id,
            job_id=job_id,
            bid_id=bid_id,
            batch_number=batch_number,
            serial_number=serial_number,
            expiration_date=expires,
            reference_number=reference_number,
            notes=notes,
        )
    return row


# =============================================================================
# Transfers
# =============================================================================

def location_balance(item_id: int, location_id: int) -> Decimal:
    value = (
        db.session.query(func.coalesce(func.sum(InventoryTransaction.quantity), 0))
        .filter(
            InventoryTransaction.item_id == item_id,
            InventoryTransaction.location_id == location_id,
        )
        .scalar()
    )
    return Decimal(value or 0)


def get_location_balances(org_id: int, item_id: int) -> list[dict]:
    """Per-location stock for an item, derived from the ledger (no cached table)."""
    get_item(org_id, item_id, include_deleted=True)
    rows = (
        db.session.query(
            InventoryTransaction.location_id,
            func.coalesce(func.sum(InventoryTransaction.quantity), 0),
        )
        .filter(InventoryTransaction.item_id == item_id)
        .group_by(InventoryTransaction.location_id)
        .order_by(InventoryTransaction.location_id)
        .all()
    )
    return [
        {"location_id": location_id, "quantity": str(Decimal(total).quantize(Decimal("0.01")))}
        for location_id, total in rows
    ]


def transfer_stock(
    *,
    org_id: int,
    item_id: int,
    quantity,
    from_location_id: int,
    to_location_id: int,
    performed_by: int | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
) -> list[InventoryTransaction]:
    """
    Move stock between two locations as one logical ledger operation.

    Writes two rows sharing a transfer_group (-q at the source, +q at the
    destination) in one unit of work; both are written or neither. Item
    on-hand is unchanged. The source location's ledger balance must cover q.
    """
    qty = parse_quantity(quantity, "quantity")
    if from_location_id is None or to_location_id is None:
        raise ValidationError("from_location_id and to_location_id are required")
    if from_location_id == to_location_id:
        raise ValidationError("from_location_id and to_location_id must differ")

    with unit_of_work():
        item = get_item_for_update(org_id, item_id)
        _validate_location(org_id, from_location_id, "from_location_id")
        _validate_location(org_id, to_location_id, "to_location_id")

        source_balance = location_balance(item.id, from_location_id)
        if source_balance < qty:
            raise InsufficientStockError(
                f"Insufficient stock at location {from_location_id}: requested {qty}, on hand {source_balance}",
                details={"item_id": item.id, "location_id": from_location_id,
                         "location_balance": str(source_balance)},
            )

        group = uuid.uuid4().hex
        on_hand = Decimal(item.quantity_on_hand or 0)
        unit_cost = item.average_cost if item.average_cost is not None else item.unit_cost
        common = dict(
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            transfer_group=group,
            reference_number=reference_number,
            notes=notes,
        )
        outbound = _new_row(item, TYPE_TRANSFER, -qty, on_hand - qty, unit_cost, performed_by,
                            location_id=from_location_id, **common)
        inbound = _new_row(item, TYPE_TRANSFER, qty, on_hand, unit_cost, performed_by,
                           location_id=to_location_id, **common)
        db.session.flush()
        ledger_appended.send(item, transactions=[outbound, inbound])

    current_app.logger.info(
        "Transfer %s item=%s qty=%s from=%s to=%s", group, item.id, qty, from_location_id, to_location_id
    )
    return [outbound, inbound]


# =============================================================================
# Reads
# =============================================================================

def get_transaction(org_id: int, transaction_id: int) -> InventoryTransaction:
    row = db.session.query(InventoryTransaction).filter_by(id=transaction_id, org_id=org_id).first()
    if row is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return row


def list_transactions(
    org_id: int,
    *,
    item_id: int | None = None,
    transaction_type: str | None = None,
    job_id: str | None = None,
    bid_id: str | None = None,
    purchase_order_id: int | None = None,
    location_id: int | None = None,
    from_date=None,
    to_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryTransaction], int]:
    query = db.session.query(InventoryTransaction).filter(InventoryTransaction.org_id == org_id)
    if item_id:
        query = query.filter(InventoryTransaction.item_id == item_id)
    if transaction_type:
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type: {transaction_type}")
        query = query.filter(InventoryTransaction.transaction_type == transaction_type)
    if job_id:
        query = query.filter(InventoryTransaction.job_id == job_id)
    if bid_id:
        query = query.filter(InventoryTransaction.bid_id == bid_id)
    if purchase_order_id:
        query = query.filter(InventoryTransaction.purchase_order_id == purchase_order_id)
    if location_id:
        query = query.filter(InventoryTransaction.location_id == location_id)
    if from_date:
        query = query.filter(InventoryTransaction.created_at >= from_date)
    if to_date:
        query = query.filter(InventoryTransaction.created_at <= to_date)

    total = query.count()
    rows = query.order_by(InventoryTransaction.id.desc()).offset(offset).limit(limit).all()
    return rows, total


# =============================================================================
# Reconciliation
# =============================================================================

def verify_item_projection(item: InventoryItem) -> dict:
    """
    Replay the ledger and recompute reservations / on-order for one item,
    then compare with the cached projection.

    Returns {"item_id", "ok", "mismatches": [...]}; never mutates anything.
    """
    mismatches: list[dict] = []

    running = ZERO
    rows = (
        db.session.query(InventoryTransaction.id, InventoryTransaction.quantity, InventoryTransaction.balance_after)
        .filter(InventoryTransaction.item_id == item.id)
        .order_by(InventoryTransaction.id.asc())
        .yield_per(500)
    )
    for row_id, quantity, balance_after in rows:
        running += Decimal(quantity)
        if Decimal(balance_after) != running:
            mismatches.append({
                "check": "balance_after_chain",
                "transaction_id": row_id,
                "expected": str(running),
                "actual": str(balance_after),
            })

    def _check(name: str, expected: Decimal, actual) -> None:
        actual = Decimal(actual or 0)
        if expected != actual:
            mismatches.append({"check": name, "expected": str(expected), "actual": str(actual)})

    _check("quantity_on_hand", running, item.quantity_on_hand)

    allocated = (
        db.session.query(func.coalesce(func.sum(InventoryAllocation.quantity_allocated), 0))
        .filter(InventoryAllocation.item_id == item.id, InventoryAllocation.status == "allocated")
        .scalar()
    )
    _check("quantity_allocated", Decimal(allocated or 0), item.quantity_allocated)

    on_order = (
        db.session.query(
            func.coalesce(
                func.sum(InventoryPurchaseOrderItem.quantity_ordered - InventoryPurchaseOrderItem.quantity_received),
                0,
            )
        )
        .join(InventoryPurchaseOrder, InventoryPurchaseOrder.id == InventoryPurchaseOrderItem.purchase_order_id)
        .filter(
            InventoryPurchaseOrderItem.item_id == item.id,
            InventoryPurchaseOrder.status.in_(ON_ORDER_PO_STATUSES),
        )
        .scalar()
    )
    _check("quantity_on_order", Decimal(on_order or 0), item.quantity_on_order)

    _check(
        "quantity_available",
        Decimal(item.quantity_on_hand or 0) - Decimal(item.quantity_allocated or 0),
        item.quantity_available,
    )
    if Decimal(item.quantity_available or 0) < 0:
        mismatches.append({"check": "available_non_negative", "actual": str(item.quantity_available)})

    return {"item_id": item.id, "item_code": item.item_code, "ok": not mismatches, "mismatches": mismatches}


def verify_ledger(org_id: int | None = None, batch_size: int | None = None) -> dict:
    """
    Reconcile every item's cached projection against the ledger, in id-ordered
    batches. Mismatches are logged at WARNING and returned.
    """
    if batch_size is None:
        batch_size = current_app.config.get("INVENTORY_BATCH_SIZE", 200)

    checked = 0
    failures: list[dict] = []
    last_id = 0
    while True:
        query = db.session.query(InventoryItem).filter(InventoryItem.id > last_id)
        if org_id is not None:
            query = query.filter(InventoryItem.org_id == org_id)
        batch = query.order_by(InventoryItem.id.asc()).limit(batch_size).all()
        if not batch:
            break
        for item in batch:
            report = verify_item_projection(item)
            checked += 1
            if not report["ok"]:
                current_app.logger.warning(
                    "Projection mismatch on item %s: %s", item.id, report["mismatches"]
                )
                failures.append(report)
        last_id = batch[-1].id

    return {"items_checked": checked, "mismatched_items": len(failures), "mismatches": failures}
