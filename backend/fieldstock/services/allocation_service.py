# Overview: Service-layer operations for allocations; encapsulates business logic and database work.

"""
Allocation Engine

Reserves item quantity for a Job or a Bid before it is consumed.

LIFECYCLE:
1. allocated: quantity moved from available to allocated (no ledger row)
2. issued: issue ledger row consumes the reservation and the physical stock
3. partially_used: some issued quantity is still outstanding after a usage
   record or a return
4. fully_used: everything issued was used, nothing returned
5. returned: nothing outstanding and at least part came back to stock
6. cancelled: reservation released before issue (no ledger row)

Outstanding = quantity_allocated - quantity_used - quantity_returned.
quantity_used + quantity_returned never exceeds quantity_allocated.
Any operation from a state it does not accept raises InvalidTransitionError,
including a second cancel and a return larger than what is outstanding.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import InventoryAllocation
from ..validation import parse_datetime, parse_quantity
from fieldstock.time_utils import utcnow
from .concurrency import lock_for_update, unit_of_work
from .item_service import get_item_for_update
from .ledger_service import (
    TYPE_ISSUE,
    TYPE_RETURN,
    append_transaction_inner,
    release_reservation,
    reserve_quantity,
)


STATUS_ALLOCATED = "allocated"
STATUS_ISSUED = "issued"
STATUS_PARTIALLY_USED = "partially_used"
STATUS_FULLY_USED = "fully_used"
STATUS_RETURNED = "returned"
STATUS_CANCELLED = "cancelled"

ALLOCATION_STATUSES = {
    STATUS_ALLOCATED,
    STATUS_ISSUED,
    STATUS_PARTIALLY_USED,
    STATUS_FULLY_USED,
    STATUS_RETURNED,
    STATUS_CANCELLED,
}

# States in which issued stock is still outstanding in the field
IN_FIELD_STATUSES = {STATUS_ISSUED, STATUS_PARTIALLY_USED}


def _lock_allocation(org_id: int, allocation_id: int) -> InventoryAllocation:
    allocation = lock_for_update(
        db.session.query(InventoryAllocation).filter_by(id=allocation_id, org_id=org_id)
    ).first()
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    return allocation


def _settle_status(allocation: InventoryAllocation) -> None:
    outstanding = allocation.quantity_outstanding
    if outstanding > 0:
        allocation.status = STATUS_PARTIALLY_USED
    elif Decimal(allocation.quantity_returned or 0) > 0:
        allocation.status = STATUS_RETURNED
    else:
        allocation.status = STATUS_FULLY_USED


def get_allocation(org_id: int, allocation_id: int) -> InventoryAllocation:
    allocation = db.session.query(InventoryAllocation).filter_by(id=allocation_id, org_id=org_id).first()
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    return allocation


def list_allocations(
    org_id: int,
    *,
    item_id: int | None = None,
    job_id: str | None = None,
    bid_id: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryAllocation], int]:
    query = db.session.query(InventoryAllocation).filter(InventoryAllocation.org_id == org_id)
    if item_id:
        query = query.filter(InventoryAllocation.item_id == item_id)
    if job_id:
        query = query.filter(InventoryAllocation.job_id == job_id)
    if bid_id:
        query = query.filter(InventoryAllocation.bid_id == bid_id)
    if status:
        if status not in ALLOCATION_STATUSES:
            raise ValidationError(f"Invalid allocation status: {status}")
        query = query.filter(InventoryAllocation.status == status)

    total = query.count()
    rows = query.order_by(InventoryAllocation.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def create_allocation(
    *,
    org_id: int,
    item_id: int,
    quantity,
    job_id: str | None = None,
    bid_id: str | None = None,
    allocated_by: int | None = None,
    expected_use_date=None,
    notes: str | None = None,
) -> InventoryAllocation:
    """
    Reserve quantity of an item for exactly one of a job or a bid.

    Raises:
        ValidationError: both or neither of job_id / bid_id, bad quantity
        NotFoundError: unknown item
        InsufficientStockError: quantity exceeds what is available
    """
    qty = parse_quantity(quantity, "quantity")
    job_id = str(job_id).strip() if job_id not in (None, "") else None
    bid_id = str(bid_id).strip() if bid_id not in (None, "") else None
    if bool(job_id) == bool(bid_id):
        raise ValidationError("Exactly one of job_id or bid_id is required")
    expected = parse_datetime(expected_use_date, "expected_use_date")

    with unit_of_work():
        item = get_item_for_update(org_id, item_id)
        reserve_quantity(item, qty)

        allocation = InventoryAllocation(
            org_id=org_id,
            item_id=item.id,
            job_id=job_id,
            bid_id=bid_id,
            quantity_allocated=qty,
            quantity_used=Decimal("0"),
            quantity_returned=Decimal("0"),
            status=STATUS_ALLOCATED,
            allocation_date=utcnow(),
            expected_use_date=expected,
            allocated_by=allocated_by,
            notes=notes,
        )
        db.session.add(allocation)

    current_app.logger.info(
        "Allocated %s of item %s to %s %s", qty, item_id, "job" if job_id else "bid", job_id or bid_id
    )
    return allocation


def issue_allocation(org_id: int, allocation_id: int, performed_by: int | None = None) -> InventoryAllocation:
    """
    Issue a reservation to the field: one issue ledger row for the reserved
    quantity, drawn from the reservation (on-hand and allocated drop together).
    """
    with unit_of_work():
        allocation = _lock_allocation(org_id, allocation_id)
        if allocation.status != STATUS_ALLOCATED:
            raise InvalidTransitionError(
                f"Cannot issue allocation {allocation_id} in {allocation.status} status"
            )
        item = get_item_for_update(org_id, allocation.item_id)

        append_transaction_inner(
            item,
            TYPE_ISSUE,
            -Decimal(allocation.quantity_allocated),
            performed_by=performed_by,
            allocation=allocation,
            notes=f"Issued allocation {allocation.id}",
        )
        allocation.status = STATUS_ISSUED
        allocation.actual_use_date = utcnow()

    return allocation


def record_usage(org_id: int, allocation_id: int, quantity) -> InventoryAllocation:
    """
    Record how much of the issued quantity was consumed on the job.

    No ledger row: the stock already left on-hand when it was issued.
    """
    qty = parse_quantity(quantity, "quantity")

    with unit_of_work():
        allocation = _lock_allocation(org_id, allocation_id)
        if allocation.status not in IN_FIELD_STATUSES:
            raise InvalidTransitionError(
                f"Cannot record usage on allocation {allocation_id} in {allocation.status} status"
            )
        if qty > allocation.quantity_outstanding:
            raise InvalidTransitionError(
                f"Usage {qty} exceeds outstanding quantity {allocation.quantity_outstanding}"
            )
        allocation.quantity_used = Decimal(allocation.quantity_used or 0) + qty
        _settle_status(allocation)

    return allocation


def return_allocation(org_id: int, allocation_id: int, quantity,
                      performed_by: int | None = None) -> InventoryAllocation:
    """
    Return unused issued stock: one return ledger row restoring on-hand.

    The returned quantity may not exceed what is still outstanding.
    """
    qty = parse_quantity(quantity, "quantity")

    with unit_of_work():
        allocation = _lock_allocation(org_id, allocation_id)
        if allocation.status not in IN_FIELD_STATUSES:
            raise InvalidTransitionError(
                f"Cannot return allocation {allocation_id} in {allocation.status} status"
            )
        if qty > allocation.quantity_outstanding:
            raise InvalidTransitionError(
                f"Return {qty} exceeds outstanding quantity {allocation.quantity_outstanding}"
            )
        item = get_item_for_update(org_id, allocation.item_id)

        append_transaction_inner(
            item,
            TYPE_RETURN,
            qty,
            performed_by=performed_by,
            job_id=allocation.job_id,
            bid_id=allocation.bid_id,
            notes=f"Returned from allocation {allocation.id}",
        )
        allocation.quantity_returned = Decimal(allocation.quantity_returned or 0) + qty
        _settle_status(allocation)

    return allocation


def cancel_allocation(org_id: int, allocation_id: int) -> InventoryAllocation:
    """Release a reservation that was never issued. No ledger row."""
    with unit_of_work():
        allocation = _lock_allocation(org_id, allocation_id)
        if allocation.status != STATUS_ALLOCATED:
            raise InvalidTransitionError(
                f"Cannot cancel allocation {allocation_id} in {allocation.status} status"
            )
        item = get_item_for_update(org_id, allocation.item_id)
        release_reservation(item, Decimal(allocation.quantity_allocated))
        allocation.status = STATUS_CANCELLED
        allocation.cancelled_at = utcnow()

    return allocation
