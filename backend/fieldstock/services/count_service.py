# backend/fieldstock/services/count_service.py
"""
Physical inventory count service.

Regular physical counts keep the ledger honest: the system quantity of
each in-scope item is snapshotted when counting starts, counters record
what is actually on the shelf, and completion books the difference as
adjustment ledger rows.

LIFECYCLE:
1. planned: count created, scope chosen (full / cycle / spot)
2. in_progress: system quantities snapshotted, counts being recorded
3. completed: one adjustment per counted line with non-zero variance
4. cancelled: abandoned before completion, no adjustments
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from fieldstock.extensions import db
from fieldstock.errors import InvalidTransitionError, NotFoundError, ValidationError
from fieldstock.models import InventoryCount, InventoryCountItem, InventoryItem, Location
from fieldstock.validation import parse_datetime, parse_quantity, quantize_money
from fieldstock.time_utils import utcnow
from fieldstock.services.concurrency import lock_for_update, lock_rows_in_id_order, unit_of_work
from fieldstock.services.document_service import COUNT_NUMBERS, next_document_number
from fieldstock.services.ledger_service import TYPE_ADJUSTMENT, append_transaction_inner


# Count status constants
COUNT_STATUS_PLANNED = "planned"
COUNT_STATUS_IN_PROGRESS = "in_progress"
COUNT_STATUS_COMPLETED = "completed"
COUNT_STATUS_CANCELLED = "cancelled"

COUNT_STATUSES = {
    COUNT_STATUS_PLANNED,
    COUNT_STATUS_IN_PROGRESS,
    COUNT_STATUS_COMPLETED,
    COUNT_STATUS_CANCELLED,
}

# Count type constants
COUNT_TYPE_FULL = "full"
COUNT_TYPE_CYCLE = "cycle"
COUNT_TYPE_SPOT = "spot"
COUNT_TYPES = {COUNT_TYPE_FULL, COUNT_TYPE_CYCLE, COUNT_TYPE_SPOT}


def _lock_count(org_id: int, count_id: int) -> InventoryCount:
    count = lock_for_update(db.session.query(InventoryCount).filter_by(id=count_id, org_id=org_id)).first()
    if not count:
        raise NotFoundError(f"Count {count_id} not found")
    return count


def get_count(org_id: int, count_id: int) -> InventoryCount:
    count = db.session.query(InventoryCount).filter_by(id=count_id, org_id=org_id).first()
    if not count:
        raise NotFoundError(f"Count {count_id} not found")
    return count


def list_counts(
    org_id: int,
    *,
    status: str | None = None,
    count_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryCount], int]:
    query = db.session.query(InventoryCount).filter(InventoryCount.org_id == org_id)
    if status:
        if status not in COUNT_STATUSES:
            raise ValidationError(f"Invalid count status: {status}")
        query = query.filter(InventoryCount.status == status)
    if count_type:
        query = query.filter(InventoryCount.count_type == count_type)
    total = query.count()
    counts = query.order_by(InventoryCount.id.desc()).offset(offset).limit(limit).all()
    return counts, total


def create_count(
    org_id: int,
    count_type: str,
    *,
    location_id: int | None = None,
    item_ids: list[int] | None = None,
    count_date=None,
    notes: str | None = None,
    created_by: int | None = None,
) -> InventoryCount:
    """
    Plan a count (status: planned).

    Args:
        org_id: Organization
        count_type: "full", "cycle" or "spot"
        location_id: Restrict scope to items whose primary location is this one
        item_ids: Explicit item scope (required for spot counts)
        count_date: Scheduled date
        notes: Free text
        created_by: User planning the count

    Raises:
        ValidationError: bad type, missing spot scope, unknown location/items
    """
    if count_type not in COUNT_TYPES:
        raise ValidationError(f"Invalid count type: {count_type}")
    if item_ids is not None and not isinstance(item_ids, list):
        raise ValidationError("item_ids must be a list")
    if count_type == COUNT_TYPE_SPOT and not item_ids:
        raise ValidationError("Spot counts require item_ids")
    scheduled = parse_datetime(count_date, "count_date")

    with unit_of_work():
        if location_id is not None:
            location = db.session.get(Location, location_id)
            if location is None or location.org_id != org_id or location.is_deleted:
                raise ValidationError("location_id does not reference a location in this organization")

        count = InventoryCount(
            org_id=org_id,
            count_number=next_document_number(org_id=org_id, document_type=COUNT_NUMBERS),
            count_type=count_type,
            status=COUNT_STATUS_PLANNED,
            location_id=location_id,
            count_date=scheduled,
            notes=notes,
            created_by=created_by,
        )
        db.session.add(count)

        if item_ids:
            unique_ids = sorted(set(item_ids))
            found = {
                item_id
                for (item_id,) in db.session.query(InventoryItem.id).filter(
                    InventoryItem.org_id == org_id,
                    InventoryItem.is_deleted.is_(False),
                    InventoryItem.id.in_(unique_ids),
                )
            }
            missing = [i for i in unique_ids if i not in found]
            if missing:
                raise ValidationError(f"Unknown items: {missing}")
            for item_id in unique_ids:
                count.lines.append(InventoryCountItem(item_id=item_id))

    return count


def _scope_query(count: InventoryCount):
    query = db.session.query(InventoryItem).filter(
        InventoryItem.org_id == count.org_id,
        InventoryItem.is_deleted.is_(False),
        InventoryItem.is_active.is_(True),
    )
    if count.location_id is not None:
        query = query.filter(InventoryItem.primary_location_id == count.location_id)
    return query


def _snapshot(line: InventoryCountItem, item: InventoryItem) -> None:
    line.system_quantity = item.quantity_on_hand
    line.unit_cost = item.average_cost if item.average_cost is not None else item.unit_cost


def start_count(org_id: int, count_id: int, batch_size: int | None = None) -> InventoryCount:
    """
    Snapshot system quantities for every in-scope item; status -> in_progress.

    Items are read in id-ordered pages of INVENTORY_BATCH_SIZE; the snapshot
    commits as one transaction so every line reflects the same moment.
    """
    if batch_size is None:
        batch_size = current_app.config.get("INVENTORY_BATCH_SIZE", 200)

    with unit_of_work():
        count = _lock_count(org_id, count_id)
        if count.status != COUNT_STATUS_PLANNED:
            raise InvalidTransitionError(f"Cannot start count in {count.status} status")

        if count.lines:
            # Explicit scope chosen at planning time
            line_by_item = {line.item_id: line for line in count.lines}
            ids = sorted(line_by_item)
            for start in range(0, len(ids), batch_size):
                page = ids[start:start + batch_size]
                items = {
                    item.id: item
                    for item in db.session.query(InventoryItem).filter(InventoryItem.id.in_(page))
                }
                for item_id in page:
                    item = items.get(item_id)
                    if item is None or item.is_deleted:
                        count.lines.remove(line_by_item[item_id])
                        continue
                    _snapshot(line_by_item[item_id], item)
                db.session.flush()
        else:
            last_id = 0
            while True:
                batch = (
                    _scope_query(count)
                    .filter(InventoryItem.id > last_id)
                    .order_by(InventoryItem.id.asc())
                    .limit(batch_size)
                    .all()
                )
                if not batch:
                    break
                for item in batch:
                    line = InventoryCountItem(item_id=item.id)
                    _snapshot(line, item)
                    count.lines.append(line)
                db.session.flush()
                last_id = batch[-1].id

        count.status = COUNT_STATUS_IN_PROGRESS
        count.started_at = utcnow()

    current_app.logger.info("Started count %s with %s line(s)", count.count_number, len(count.lines))
    return count


def begin_count(
    org_id: int,
    count_type: str,
    *,
    location_id: int | None = None,
    item_ids: list[int] | None = None,
    notes: str | None = None,
    created_by: int | None = None,
) -> InventoryCount:
    """Plan and start a count in one call."""
    count = create_count(
        org_id,
        count_type,
        location_id=location_id,
        item_ids=item_ids,
        notes=notes,
        created_by=created_by,
    )
    return start_count(org_id, count.id)


def record_count(
    org_id: int,
    count_id: int,
    item_id: int,
    counted_quantity,
    counted_by: int | None = None,
    notes: str | None = None,
) -> InventoryCountItem:
    """
    Record (or re-record) the physical quantity for one item on the count.

    variance = counted - system; variance_cost = variance * snapshot unit cost.
    """
    counted = parse_quantity(counted_quantity, "counted_quantity", allow_zero=True)

    with unit_of_work():
        count = _lock_count(org_id, count_id)
        if count.status != COUNT_STATUS_IN_PROGRESS:
            raise InvalidTransitionError(f"Cannot record counts on a count in {count.status} status")

        line = (
            db.session.query(InventoryCountItem)
            .filter_by(count_id=count.id, item_id=item_id)
            .first()
        )
        if line is None:
            raise NotFoundError(f"Item {item_id} is not part of count {count.count_number}")

        system = Decimal(line.system_quantity or 0)
        variance = counted - system
        line.counted_quantity = counted
        line.variance = variance
        line.variance_cost = quantize_money(variance * Decimal(line.unit_cost or 0))
        line.variance_percentage = (
            quantize_money(variance / system * 100) if system != 0 else None
        )
        line.counted_by = counted_by
        line.counted_at = utcnow()
        if notes is not None:
            line.notes = notes

    return line


def complete_count(org_id: int, count_id: int, completed_by: int | None = None) -> InventoryCount:
    """
    Complete a count: one adjustment ledger row per counted line with a
    non-zero variance, in item id order; uncounted lines are skipped.
    """
    with unit_of_work():
        count = _lock_count(org_id, count_id)
        if count.status != COUNT_STATUS_IN_PROGRESS:
            raise InvalidTransitionError(f"Cannot complete count in {count.status} status")

        counted_lines = [line for line in count.lines if line.counted_quantity is not None]
        items = lock_rows_in_id_order(InventoryItem, [line.item_id for line in counted_lines])
        now = utcnow()

        total_variance = Decimal("0")
        total_variance_cost = Decimal("0")
        for line in sorted(counted_lines, key=lambda l: l.item_id):
            item = items[line.item_id]
            variance = Decimal(line.variance or 0)
            if variance != 0:
                txn = append_transaction_inner(
                    item,
                    TYPE_ADJUSTMENT,
                    variance,
                    performed_by=completed_by,
                    unit_cost=Decimal(line.unit_cost) if line.unit_cost is not None else None,
                    count_id=count.id,
                    reference_number=count.count_number,
                    notes=f"Count {count.count_number} variance: {variance}",
                )
                line.adjustment_transaction_id = txn.id
                total_variance += variance
                total_variance_cost += Decimal(line.variance_cost or 0)
            item.last_counted_date = now

        count.total_variance_quantity = total_variance
        count.total_variance_cost = quantize_money(total_variance_cost)
        count.status = COUNT_STATUS_COMPLETED
        count.completed_at = now
        count.completed_by = completed_by

    current_app.logger.info(
        "Completed count %s: %s counted line(s), net variance %s",
        count.count_number, len(counted_lines), count.total_variance_quantity,
    )
    return count


def cancel_count(org_id: int, count_id: int) -> InventoryCount:
    with unit_of_work():
        count = _lock_count(org_id, count_id)
        if count.status not in (COUNT_STATUS_PLANNED, COUNT_STATUS_IN_PROGRESS):
            raise InvalidTransitionError(f"Cannot cancel count in {count.status} status")
        count.status = COUNT_STATUS_CANCELLED
        count.cancelled_at = utcnow()
    return count


def get_count_summary(org_id: int, count_id: int) -> dict:
    """
    Summary of a count with its lines.

    Returns:
        dict: {count, lines, total_lines, counted_lines, lines_with_variance,
               total_variance_quantity, total_variance_cost}
    """
    count = get_count(org_id, count_id)
    lines = list(count.lines)
    counted = [line for line in lines if line.counted_quantity is not None]
    with_variance = [line for line in counted if Decimal(line.variance or 0) != 0]
    return {
        "count": count.to_dict(),
        "lines": [line.to_dict() for line in lines],
        "total_lines": len(lines),
        "counted_lines": len(counted),
        "lines_with_variance": len(with_variance),
        "total_variance_quantity": str(sum((Decimal(l.variance) for l in with_variance), Decimal("0"))),
        "total_variance_cost": str(
            quantize_money(sum((Decimal(l.variance_cost or 0) for l in with_variance), Decimal("0")))
        ),
    }
