# Overview: Service-layer operations for purchase orders; encapsulates business logic and database work.

"""
Purchase Order Workflow

================================================================================
STATE MACHINE:
    draft -> pending_approval -> approved -> sent -> partially_received -> received -> closed
                                             |                               ^
                                             +-------------------------------+
    cancelled: reachable from draft, pending_approval, approved, sent,
               partially_received; cancelled -> closed
================================================================================

RULES:
1. Lines are edited only in draft; the header also in pending_approval.
2. approve requires at least one line (ForbiddenError otherwise) and adds each
   line's quantity_ordered to the item's on-order quantity.
3. receive is accepted from sent and partially_received. Each line delta is
   >= 0 and never takes quantity_received past quantity_ordered. Every
   non-zero delta is one receipt ledger row linked to the order, which
   raises on-hand and lowers on-order.
4. After a receipt the order is received when every line is complete,
   otherwise partially_received.
5. Cancelling an approved/sent/partially received order removes only the
   unreceived remainder from on-order.
6. close requires received or cancelled (ConflictError otherwise).
7. Status only moves forward; quantity_received never decreases.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..models import (
    InventoryItem,
    InventoryPurchaseOrder,
    InventoryPurchaseOrderItem,
    Location,
    Supplier,
)
from ..signals import purchase_order_transitioned
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_purchase_order,
    parse_cost,
    parse_quantity,
    quantize_money,
    to_decimal,
    validate_payload,
)
from fieldstock.time_utils import utcnow
from .concurrency import lock_for_update, lock_rows_in_id_order, unit_of_work
from .document_service import PURCHASE_ORDER_NUMBERS, next_document_number
from .ledger_service import TYPE_RECEIPT, add_on_order, append_transaction_inner, remove_on_order


STATUS_DRAFT = "draft"
STATUS_PENDING_APPROVAL = "pending_approval"
STATUS_APPROVED = "approved"
STATUS_SENT = "sent"
STATUS_PARTIALLY_RECEIVED = "partially_received"
STATUS_RECEIVED = "received"
STATUS_CANCELLED = "cancelled"
STATUS_CLOSED = "closed"

PO_STATUSES = {
    STATUS_DRAFT,
    STATUS_PENDING_APPROVAL,
    STATUS_APPROVED,
    STATUS_SENT,
    STATUS_PARTIALLY_RECEIVED,
    STATUS_RECEIVED,
    STATUS_CANCELLED,
    STATUS_CLOSED,
}

VALID_TRANSITIONS = {
    STATUS_DRAFT: {STATUS_PENDING_APPROVAL, STATUS_CANCELLED},
    STATUS_PENDING_APPROVAL: {STATUS_APPROVED, STATUS_CANCELLED},
    STATUS_APPROVED: {STATUS_SENT, STATUS_CANCELLED},
    STATUS_SENT: {STATUS_PARTIALLY_RECEIVED, STATUS_RECEIVED, STATUS_CANCELLED},
    STATUS_PARTIALLY_RECEIVED: {STATUS_PARTIALLY_RECEIVED, STATUS_RECEIVED, STATUS_CANCELLED},
    STATUS_RECEIVED: {STATUS_CLOSED},
    STATUS_CANCELLED: {STATUS_CLOSED},
    STATUS_CLOSED: set(),
}

# Unreceived remainder of these orders is counted in quantity_on_order
ON_ORDER_STATUSES = {STATUS_APPROVED, STATUS_SENT, STATUS_PARTIALLY_RECEIVED}
RECEIVABLE_STATUSES = {STATUS_SENT, STATUS_PARTIALLY_RECEIVED}
HEADER_EDITABLE_STATUSES = {STATUS_DRAFT, STATUS_PENDING_APPROVAL}
PAYABLE_STATUSES = {STATUS_APPROVED, STATUS_SENT, STATUS_PARTIALLY_RECEIVED, STATUS_RECEIVED, STATUS_CLOSED}

PAYMENT_PENDING = "pending"
PAYMENT_PARTIAL = "partial"
PAYMENT_PAID = "paid"

HEADER_POLICY = ModelValidationPolicy(
    writable_fields={
        "supplier_id",
        "expected_delivery_date",
        "ship_to_location_id",
        "tax_amount",
        "shipping_cost",
        "payment_terms",
        "supplier_invoice_number",
        "notes",
    },
    required_on_create={"supplier_id"},
)


def can_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, set())


def _transition(order: InventoryPurchaseOrder, new_status: str) -> None:
    if not can_transition(order.status, new_status):
        raise InvalidTransitionError(
            f"Cannot move purchase order {order.po_number} from {order.status} to {new_status}"
        )
    old_status = order.status
    order.status = new_status
    purchase_order_transitioned.send(order, old_status=old_status, new_status=new_status)
    current_app.logger.info("Purchase order %s: %s -> %s", order.po_number, old_status, new_status)


def _recalculate_totals(order: InventoryPurchaseOrder) -> None:
    subtotal = sum((Decimal(line.line_total) for line in order.lines), Decimal("0"))
    order.subtotal = quantize_money(subtotal)
    order.total_amount = quantize_money(
        subtotal + Decimal(order.tax_amount or 0) + Decimal(order.shipping_cost or 0)
    )


def _validate_header_refs(org_id: int, patch: dict) -> None:
    if "supplier_id" in patch:
        supplier = db.session.get(Supplier, patch["supplier_id"]) if patch["supplier_id"] else None
        if supplier is None or supplier.org_id != org_id or supplier.is_deleted:
            raise ValidationError("supplier_id does not reference a supplier in this organization")
        if not supplier.is_active:
            raise ValidationError(f"Supplier {supplier.name} is inactive")
    if patch.get("ship_to_location_id") is not None:
        location = db.session.get(Location, patch["ship_to_location_id"])
        if location is None or location.org_id != org_id or location.is_deleted:
            raise ValidationError("ship_to_location_id does not reference a location in this organization")


def _lock_order(org_id: int, order_id: int) -> InventoryPurchaseOrder:
    order = lock_for_update(
        db.session.query(InventoryPurchaseOrder).filter_by(id=order_id, org_id=org_id, is_deleted=False)
    ).first()
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def _require_status(order: InventoryPurchaseOrder, allowed: set[str], action: str) -> None:
    if order.status not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action} purchase order {order.po_number} in {order.status} status"
        )


def _build_line(org_id: int, order: InventoryPurchaseOrder, data: dict) -> InventoryPurchaseOrderItem:
    if not isinstance(data, dict):
        raise ValidationError("Each line must be an object")
    item_id = data.get("item_id")
    if not item_id:
        raise ValidationError("item_id is required on each line")
    item = (
        db.session.query(InventoryItem)
        .filter_by(id=item_id, org_id=org_id, is_deleted=False)
        .first()
    )
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    if any(line.item_id == item.id for line in order.lines):
        raise ConflictError(f"Item {item.item_code} is already on purchase order {order.po_number}")

    qty = parse_quantity(data.get("quantity_ordered"), "quantity_ordered")
    unit_cost = data.get("unit_cost")
    cost = parse_cost(unit_cost if unit_cost is not None else item.unit_cost, "unit_cost")

    line = InventoryPurchaseOrderItem(
        item_id=item.id,
        quantity_ordered=qty,
        quantity_received=Decimal("0"),
        unit_cost=cost,
        line_total=quantize_money(qty * cost),
        notes=data.get("notes"),
    )
    order.lines.append(line)
    return line


# =============================================================================
# Reads
# =============================================================================

def get_purchase_order(org_id: int, order_id: int) -> InventoryPurchaseOrder:
    order = (
        db.session.query(InventoryPurchaseOrder)
        .filter_by(id=order_id, org_id=org_id, is_deleted=False)
        .first()
    )
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def list_purchase_orders(
    org_id: int,
    *,
    status: str | None = None,
    supplier_id: int | None = None,
    from_date=None,
    to_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryPurchaseOrder], int]:
    query = db.session.query(InventoryPurchaseOrder).filter(
        InventoryPurchaseOrder.org_id == org_id,
        InventoryPurchaseOrder.is_deleted.is_(False),
    )
    if status:
        if status not in PO_STATUSES:
            raise ValidationError(f"Invalid purchase order status: {status}")
        query = query.filter(InventoryPurchaseOrder.status == status)
    if supplier_id:
        query = query.filter(InventoryPurchaseOrder.supplier_id == supplier_id)
    if from_date:
        query = query.filter(InventoryPurchaseOrder.order_date >= from_date)
    if to_date:
        query = query.filter(InventoryPurchaseOrder.order_date <= to_date)

    total = query.count()
    orders = query.order_by(InventoryPurchaseOrder.id.desc()).offset(offset).limit(limit).all()
    return orders, total


# =============================================================================
# Draft editing
# =============================================================================

def create_purchase_order(org_id: int, payload: dict, created_by: int | None = None) -> InventoryPurchaseOrder:
    """
    Create a draft purchase order, optionally with lines.

    payload: header fields plus "lines": [{item_id, quantity_ordered, unit_cost?, notes?}]
    """
    payload = dict(payload or {})
    lines = payload.pop("lines", None) or []
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")

    patch = validate_payload(model=InventoryPurchaseOrder, payload=payload, policy=HEADER_POLICY, partial=False)
    enforce_rules_purchase_order(patch)

    with unit_of_work():
        _validate_header_refs(org_id, patch)
        order = InventoryPurchaseOrder(
            org_id=org_id,
            po_number=next_document_number(org_id=org_id, document_type=PURCHASE_ORDER_NUMBERS),
            status=STATUS_DRAFT,
            order_date=utcnow(),
            created_by=created_by,
            tax_amount=Decimal("0"),
            shipping_cost=Decimal("0"),
            amount_paid=Decimal("0"),
            payment_status=PAYMENT_PENDING,
        )
        for field, value in patch.items():
            setattr(order, field, value)
        db.session.add(order)

        for data in lines:
            _build_line(org_id, order, data)
        _recalculate_totals(order)

    current_app.logger.info("Created purchase order %s with %s line(s)", order.po_number, len(order.lines))
    return order


def update_purchase_order(org_id: int, order_id: int, changes: dict) -> InventoryPurchaseOrder:
    """Edit header fields while the order is draft or pending approval."""
    patch = validate_payload(model=InventoryPurchaseOrder, payload=changes, policy=HEADER_POLICY, partial=True)
    enforce_rules_purchase_order(patch)

    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, HEADER_EDITABLE_STATUSES, "edit")
        _validate_header_refs(org_id, patch)
        for field, value in patch.items():
            setattr(order, field, value)
        _recalculate_totals(order)

    return order


def add_line(org_id: int, order_id: int, data: dict) -> InventoryPurchaseOrderItem:
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, {STATUS_DRAFT}, "add lines to")
        line = _build_line(org_id, order, data)
        _recalculate_totals(order)
    return line


def _get_line(order: InventoryPurchaseOrder, line_id: int) -> InventoryPurchaseOrderItem:
    for line in order.lines:
        if line.id == line_id:
            return line
    raise NotFoundError(f"Line {line_id} not found on purchase order {order.po_number}")


def update_line(org_id: int, order_id: int, line_id: int, data: dict) -> InventoryPurchaseOrderItem:
    data = dict(data or {})
    unknown = set(data) - {"quantity_ordered", "unit_cost", "notes"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, {STATUS_DRAFT}, "edit lines on")
        line = _get_line(order, line_id)
        if "quantity_ordered" in data:
            line.quantity_ordered = parse_quantity(data["quantity_ordered"], "quantity_ordered")
        if "unit_cost" in data:
            line.unit_cost = parse_cost(data["unit_cost"], "unit_cost")
        if "notes" in data:
            line.notes = data["notes"]
        line.line_total = quantize_money(Decimal(line.quantity_ordered) * Decimal(line.unit_cost))
        _recalculate_totals(order)
    return line


def remove_line(org_id: int, order_id: int, line_id: int) -> InventoryPurchaseOrder:
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, {STATUS_DRAFT}, "remove lines from")
        line = _get_line(order, line_id)
        order.lines.remove(line)
        _recalculate_totals(order)
    return order


def delete_purchase_order(org_id: int, order_id: int) -> InventoryPurchaseOrder:
    """Soft-delete a draft. Anything past draft is cancelled instead."""
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, {STATUS_DRAFT}, "delete")
        order.is_deleted = True
    return order


# =============================================================================
# Transitions
# =============================================================================

def submit_purchase_order(org_id: int, order_id: int) -> InventoryPurchaseOrder:
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _transition(order, STATUS_PENDING_APPROVAL)
        order.submitted_at = utcnow()
    return order


def approve_purchase_order(org_id: int, order_id: int, approved_by: int | None = None) -> InventoryPurchaseOrder:
    """
    Approve an order and book its lines as on-order supply.

    Raises:
        ForbiddenError: order has no lines
        InvalidTransitionError: order is not pending approval
    """
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        if order.status == STATUS_PENDING_APPROVAL and not order.lines:
            raise ForbiddenError(f"Purchase order {order.po_number} has no line items")
        _transition(order, STATUS_APPROVED)

        items = lock_rows_in_id_order(InventoryItem, [line.item_id for line in order.lines])
        for line in sorted(order.lines, key=lambda l: l.item_id):
            add_on_order(items[line.item_id], Decimal(line.quantity_ordered))

        order.approved_by = approved_by
        order.approved_at = utcnow()
    return order


def send_purchase_order(org_id: int, order_id: int) -> InventoryPurchaseOrder:
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _transition(order, STATUS_SENT)
        order.sent_at = utcnow()
    return order


def receive_purchase_order(
    org_id: int,
    order_id: int,
    receipts: list[dict],
    performed_by: int | None = None,
    location_id: int | None = None,
) -> InventoryPurchaseOrder:
    """
    Receive quantities against order lines.

    receipts: [{"line_id" | "item_id": ..., "quantity": delta}, ...]
    Each delta only adds what arrived in this call; lines not mentioned
    receive nothing.

    Raises:
        InvalidTransitionError: order is not sent / partially received
        ValidationError: negative delta, over-receipt, nothing received,
            unknown or duplicate line
    """
    if not isinstance(receipts, list) or not receipts:
        raise ValidationError("receipts must be a non-empty list")

    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, RECEIVABLE_STATUSES, "receive")

        by_line = {line.id: line for line in order.lines}
        by_item = {line.item_id: line for line in order.lines}

        deltas: dict[int, Decimal] = {}
        for receipt in receipts:
            if not isinstance(receipt, dict):
                raise ValidationError("Each receipt must be an object")
            if receipt.get("line_id") is not None:
                line = by_line.get(receipt["line_id"])
            else:
                line = by_item.get(receipt.get("item_id"))
            if line is None:
                raise ValidationError("Receipt does not match a line on this purchase order")
            if line.id in deltas:
                raise ValidationError(f"Line {line.id} appears more than once")

            delta = parse_quantity(receipt.get("quantity"), "quantity", allow_zero=True)
            if Decimal(line.quantity_received) + delta > Decimal(line.quantity_ordered):
                raise ValidationError(
                    f"Receiving {delta} on line {line.id} exceeds ordered quantity "
                    f"({line.quantity_received} of {line.quantity_ordered} already received)",
                    details={"line_id": line.id, "remaining": str(line.quantity_remaining)},
                )
            deltas[line.id] = delta

        to_receive = [by_line[line_id] for line_id, delta in deltas.items() if delta > 0]
        if not to_receive:
            raise ValidationError("Nothing to receive: every quantity is zero")

        items = lock_rows_in_id_order(InventoryItem, [line.item_id for line in to_receive])
        now = utcnow()
        for line in sorted(to_receive, key=lambda l: l.item_id):
            delta = deltas[line.id]
            append_transaction_inner(
                items[line.item_id],
                TYPE_RECEIPT,
                delta,
                performed_by=performed_by,
                unit_cost=Decimal(line.unit_cost),
                location_id=location_id or order.ship_to_location_id,
                purchase_order_id=order.id,
                supplier_id=order.supplier_id,
                reference_number=order.po_number,
                notes=f"Received on {order.po_number}",
            )
            line.quantity_received = Decimal(line.quantity_received) + delta
            if line.quantity_received == Decimal(line.quantity_ordered):
                line.actual_delivery_date = now

        if all(Decimal(l.quantity_received) >= Decimal(l.quantity_ordered) for l in order.lines):
            _transition(order, STATUS_RECEIVED)
            order.actual_delivery_date = now
        else:
            _transition(order, STATUS_PARTIALLY_RECEIVED)

    return order


def cancel_purchase_order(org_id: int, order_id: int, reason: str | None = None) -> InventoryPurchaseOrder:
    """Cancel before full receipt; the unreceived remainder leaves on-order."""
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        was_on_order = order.status in ON_ORDER_STATUSES
        _transition(order, STATUS_CANCELLED)

        if was_on_order:
            remaining = [line for line in order.lines if line.quantity_remaining > 0]
            items = lock_rows_in_id_order(InventoryItem, [line.item_id for line in remaining])
            for line in sorted(remaining, key=lambda l: l.item_id):
                remove_on_order(items[line.item_id], Decimal(line.quantity_remaining))

        order.cancelled_at = utcnow()
        order.cancellation_reason = reason
    return order


def close_purchase_order(org_id: int, order_id: int) -> InventoryPurchaseOrder:
    with unit_of_work():
        order = _lock_order(org_id, order_id)
        if order.status not in (STATUS_RECEIVED, STATUS_CANCELLED):
            raise ConflictError(
                f"Purchase order {order.po_number} must be received or cancelled before closing "
                f"(status: {order.status})"
            )
        _transition(order, STATUS_CLOSED)
        order.closed_at = utcnow()
    return order


def record_payment(org_id: int, order_id: int, amount) -> InventoryPurchaseOrder:
    """Add a supplier payment; the running total may not exceed total_amount."""
    value = to_decimal(amount, "amount")
    if value <= 0:
        raise ValidationError("amount must be > 0")
    value = quantize_money(value)

    with unit_of_work():
        order = _lock_order(org_id, order_id)
        _require_status(order, PAYABLE_STATUSES, "record payment on")
        paid = Decimal(order.amount_paid or 0) + value
        total = Decimal(order.total_amount or 0)
        if paid > total:
            raise ValidationError(
                f"Payment would exceed order total ({paid} > {total})",
                details={"amount_paid": str(order.amount_paid), "total_amount": str(total)},
            )
        order.amount_paid = paid
        order.payment_status = PAYMENT_PAID if paid == total else PAYMENT_PARTIAL
    return order
