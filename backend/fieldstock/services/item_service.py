# Overview: Service-layer operations for the item registry; encapsulates business logic and database work.

"""
Item Registry Service

Owns item identity, costing, reorder policy and the derived status.

QUANTITIES ARE NOT EDITABLE HERE:
quantity_on_hand / quantity_allocated / quantity_available / quantity_on_order
(and the derived status / average cost) are written only by ledger_service.
Any attempt to set them through create/update raises InvalidOperationError.
A new item may carry initial_quantity, which is booked as one initial_stock
ledger row in the same transaction.

STATUS:
derive_status() is computed from on-hand vs. reorder_level. status_override
layers "on_order" (set/cleared by the purchase order workflow) or
"discontinued" (set/cleared by an administrator) on top.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, InvalidOperationError, NotFoundError, ValidationError
from ..models import (
    Category,
    InventoryAllocation,
    InventoryItem,
    InventoryItemHistory,
    InventoryPriceHistory,
    InventoryPurchaseOrder,
    InventoryPurchaseOrderItem,
    Location,
    Supplier,
    UnitOfMeasure,
)
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_item,
    parse_quantity,
    validate_payload,
)
from .concurrency import lock_for_update, unit_of_work
from flask import current_app


STATUS_IN_STOCK = "in_stock"
STATUS_LOW_STOCK = "low_stock"
STATUS_OUT_OF_STOCK = "out_of_stock"
STATUS_ON_ORDER = "on_order"
STATUS_DISCONTINUED = "discontinued"

ITEM_STATUSES = {
    STATUS_IN_STOCK,
    STATUS_LOW_STOCK,
    STATUS_OUT_OF_STOCK,
    STATUS_ON_ORDER,
    STATUS_DISCONTINUED,
}

# Written only through the ledger / workflows
PROTECTED_FIELDS = {
    "quantity_on_hand",
    "quantity_allocated",
    "quantity_available",
    "quantity_on_order",
    "status",
    "average_cost",
    "last_purchase_price",
    "last_restocked_date",
    "last_counted_date",
}

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "item_code",
        "name",
        "description",
        "category_id",
        "unit_of_measure_id",
        "primary_supplier_id",
        "primary_location_id",
        "unit_cost",
        "selling_price",
        "reorder_level",
        "reorder_quantity",
        "max_stock_level",
        "manufacturer",
        "model_number",
        "part_number",
        "barcode",
        "track_by_serial",
        "track_by_batch",
        "is_active",
        "notes",
        "status_override",
    },
    required_on_create={"item_code", "name"},
)

# Items referenced by these allocation states cannot be deleted
OPEN_ALLOCATION_STATUSES = ("allocated", "issued", "partially_used")
OPEN_PURCHASE_ORDER_STATUSES = ("draft", "pending_approval", "approved", "sent", "partially_received")

PRICE_FIELDS = {"unit_cost": "unit_cost", "selling_price": "selling_price"}


def derive_status(item: InventoryItem) -> str:
    """
    Pure status derivation.

    Explicit overrides win; otherwise out_of_stock at zero on-hand,
    low_stock at or below the reorder level, in_stock above it.
    """
    if item.status_override in (STATUS_ON_ORDER, STATUS_DISCONTINUED):
        return item.status_override
    on_hand = Decimal(item.quantity_on_hand or 0)
    if on_hand == 0:
        return STATUS_OUT_OF_STOCK
    if on_hand <= Decimal(item.reorder_level or 0):
        return STATUS_LOW_STOCK
    return STATUS_IN_STOCK


def _reject_protected_fields(payload: dict) -> None:
    blocked = sorted(k for k in payload if k in PROTECTED_FIELDS)
    if blocked:
        raise InvalidOperationError(
            f"Cannot set {', '.join(blocked)} directly; quantities change only through ledger transactions",
            details={"fields": blocked},
        )


def _validate_references(org_id: int, patch: dict) -> None:
    if patch.get("category_id") is not None:
        category = db.session.get(Category, patch["category_id"])
        if category is None or not category.is_active:
            raise ValidationError("category_id does not reference an active category")
    if patch.get("unit_of_measure_id") is not None:
        unit = db.session.get(UnitOfMeasure, patch["unit_of_measure_id"])
        if unit is None or not unit.is_active:
            raise ValidationError("unit_of_measure_id does not reference an active unit")
    if patch.get("primary_supplier_id") is not None:
        supplier = db.session.get(Supplier, patch["primary_supplier_id"])
        if supplier is None or supplier.org_id != org_id or supplier.is_deleted:
            raise ValidationError("primary_supplier_id does not reference a supplier in this organization")
    if patch.get("primary_location_id") is not None:
        location = db.session.get(Location, patch["primary_location_id"])
        if location is None or location.org_id != org_id or location.is_deleted:
            raise ValidationError("primary_location_id does not reference a location in this organization")


def _ensure_unique_code(org_id: int, item_code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(InventoryItem.id).filter(
        InventoryItem.org_id == org_id,
        InventoryItem.item_code == item_code,
    )
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first():
        raise ConflictError(f"Item code {item_code} already exists")


def _record_history(item: InventoryItem, action: str, performed_by: int | None,
                    field: str | None = None, old=None, new=None) -> None:
    db.session.add(InventoryItemHistory(
        org_id=item.org_id,
        item_id=item.id,
        action=action,
        field_changed=field,
        old_value=None if old is None else str(old),
        new_value=None if new is None else str(new),
        performed_by=performed_by,
    ))


def record_price_change(
    item: InventoryItem,
    *,
    price_type: str,
    old_price,
    new_price,
    reason: str,
    performed_by: int | None,
    supplier_id: int | None = None,
    purchase_order_id: int | None = None,
) -> None:
    if new_price is None:
        return
    if old_price is not None and Decimal(old_price) == Decimal(new_price):
        return
    db.session.add(InventoryPriceHistory(
        org_id=item.org_id,
        item_id=item.id,
        price_type=price_type,
        old_price=old_price,
        new_price=new_price,
        reason=reason,
        supplier_id=supplier_id,
        purchase_order_id=purchase_order_id,
        performed_by=performed_by,
    ))


def _query_items(org_id: int, include_deleted: bool = False):
    query = db.session.query(InventoryItem).filter(InventoryItem.org_id == org_id)
    if not include_deleted:
        query = query.filter(InventoryItem.is_deleted.is_(False))
    return query


def get_item(org_id: int, item_id: int, *, include_deleted: bool = False) -> InventoryItem:
    item = _query_items(org_id, include_deleted).filter(InventoryItem.id == item_id).first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def get_item_for_update(org_id: int, item_id: int) -> InventoryItem:
    """Row-locked fetch. Deleted items are not mutable."""
    item = lock_for_update(_query_items(org_id).filter(InventoryItem.id == item_id)).first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def list_items(
    org_id: int,
    *,
    category_id: int | None = None,
    status: str | None = None,
    supplier_id: int | None = None,
    location_id: int | None = None,
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryItem], int]:
    query = _query_items(org_id, include_deleted)
    if category_id:
        query = query.filter(InventoryItem.category_id == category_id)
    if status:
        if status not in ITEM_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(InventoryItem.status == status)
    if supplier_id:
        query = query.filter(InventoryItem.primary_supplier_id == supplier_id)
    if location_id:
        query = query.filter(InventoryItem.primary_location_id == location_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            InventoryItem.name.ilike(pattern),
            InventoryItem.item_code.ilike(pattern),
            InventoryItem.part_number.ilike(pattern),
            InventoryItem.barcode.ilike(pattern),
        ))

    total = query.count()
    items = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).offset(offset).limit(limit).all()
    return items, total


def create_item(org_id: int, payload: dict, performed_by: int | None = None) -> InventoryItem:
    """
    Register a new item.

    Args:
        org_id: Owning organization
        payload: Item fields; optional initial_quantity is booked as initial stock
        performed_by: Acting user

    Raises:
        InvalidOperationError: payload sets a quantity/status field
        ValidationError: malformed fields or references
        ConflictError: item_code already used in this organization
    """
    from .ledger_service import append_transaction_inner

    payload = dict(payload or {})
    initial_quantity = payload.pop("initial_quantity", None)
    _reject_protected_fields(payload)

    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)
    if patch.get("status_override") not in (None, STATUS_DISCONTINUED):
        raise InvalidOperationError("status_override may only be set to discontinued")

    qty = None
    if initial_quantity is not None:
        qty = parse_quantity(initial_quantity, "initial_quantity", allow_zero=True)

    with unit_of_work():
        _validate_references(org_id, patch)
        _ensure_unique_code(org_id, patch["item_code"])

        item = InventoryItem(
            org_id=org_id,
            created_by=performed_by,
            quantity_on_hand=Decimal("0"),
            quantity_allocated=Decimal("0"),
            quantity_available=Decimal("0"),
            quantity_on_order=Decimal("0"),
            **patch,
        )
        if item.unit_cost is None:
            item.unit_cost = Decimal("0")
        if item.reorder_level is None:
            item.reorder_level = Decimal("0")
        item.status = derive_status(item)
        db.session.add(item)
        db.session.flush()

        _record_history(item, "created", performed_by)
        if item.unit_cost:
            record_price_change(
                item,
                price_type="unit_cost",
                old_price=None,
                new_price=item.unit_cost,
                reason="manual_update",
                performed_by=performed_by,
            )

        if qty:
            append_transaction_inner(
                item,
                "initial_stock",
                qty,
                performed_by=performed_by,
                unit_cost=item.unit_cost,
                notes="Initial stock on item registration",
            )

    current_app.logger.info("Created item %s (%s) in org %s", item.id, item.item_code, org_id)
    return item


def update_item(org_id: int, item_id: int, changes: dict, performed_by: int | None = None) -> InventoryItem:
    """
    Edit non-quantity fields.

    status_override accepts "discontinued" or null; "on_order" belongs to
    the purchase order workflow. Clearing "discontinued" restores "on_order"
    when the item still has stock on order.
    """
    changes = dict(changes or {})
    _reject_protected_fields(changes)
    if "initial_quantity" in changes:
        raise InvalidOperationError("initial_quantity is only accepted when creating an item")

    patch = validate_payload(model=InventoryItem, payload=changes, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)

    with unit_of_work():
        item = get_item_for_update(org_id, item_id)
        _validate_references(org_id, patch)

        if "item_code" in patch and patch["item_code"] != item.item_code:
            _ensure_unique_code(org_id, patch["item_code"], exclude_id=item.id)

        if "status_override" in patch:
            requested = patch.pop("status_override")
            if requested == STATUS_DISCONTINUED:
                new_override = STATUS_DISCONTINUED
            elif requested is None:
                if item.status_override == STATUS_ON_ORDER:
                    raise InvalidOperationError("on_order status is managed by purchase orders")
                new_override = STATUS_ON_ORDER if (item.quantity_on_order or 0) > 0 else None
            else:
                raise InvalidOperationError("status_override may only be set to discontinued or cleared")
            if new_override != item.status_override:
                _record_history(item, "updated", performed_by, "status_override", item.status_override, new_override)
                item.status_override = new_override

        for field, value in patch.items():
            old = getattr(item, field)
            if old == value:
                continue
            _record_history(item, "updated", performed_by, field, old, value)
            if field in PRICE_FIELDS:
                record_price_change(
                    item,
                    price_type=PRICE_FIELDS[field],
                    old_price=old,
                    new_price=value,
                    reason="manual_update",
                    performed_by=performed_by,
                )
            setattr(item, field, value)

        if item.unit_cost is None:
            item.unit_cost = Decimal("0")
        if item.reorder_level is None:
            item.reorder_level = Decimal("0")
        item.status = derive_status(item)

    return item


def soft_delete_item(org_id: int, item_id: int, performed_by: int | None = None) -> InventoryItem:
    """
    Soft-delete an item.

    Raises ConflictError while an open allocation or an undelivered
    purchase order line still references it.
    """
    with unit_of_work():
        item = get_item_for_update(org_id, item_id)

        open_allocations = (
            db.session.query(InventoryAllocation.id)
            .filter(
                InventoryAllocation.item_id == item.id,
                InventoryAllocation.status.in_(OPEN_ALLOCATION_STATUSES),
            )
            .count()
        )
        if open_allocations:
            raise ConflictError(
                f"Item {item.item_code} has {open_allocations} open allocation(s)",
                details={"open_allocations": open_allocations},
            )

        undelivered_lines = (
            db.session.query(InventoryPurchaseOrderItem.id)
            .join(InventoryPurchaseOrder, InventoryPurchaseOrder.id == InventoryPurchaseOrderItem.purchase_order_id)
            .filter(
                InventoryPurchaseOrderItem.item_id == item.id,
                InventoryPurchaseOrder.status.in_(OPEN_PURCHASE_ORDER_STATUSES),
                InventoryPurchaseOrder.is_deleted.is_(False),
                InventoryPurchaseOrderItem.quantity_received < InventoryPurchaseOrderItem.quantity_ordered,
            )
            .count()
        )
        if undelivered_lines:
            raise ConflictError(
                f"Item {item.item_code} is on {undelivered_lines} undelivered purchase order line(s)",
                details={"undelivered_lines": undelivered_lines},
            )

        item.is_deleted = True
        item.is_active = False
        _record_history(item, "deleted", performed_by)

    current_app.logger.info("Soft-deleted item %s in org %s", item.id, org_id)
    return item


def get_item_history(org_id: int, item_id: int) -> list[InventoryItemHistory]:
    get_item(org_id, item_id, include_deleted=True)
    return (
        db.session.query(InventoryItemHistory)
        .filter_by(item_id=item_id)
        .order_by(InventoryItemHistory.id.asc())
        .all()
    )


def get_price_history(org_id: int, item_id: int) -> list[InventoryPriceHistory]:
    get_item(org_id, item_id, include_deleted=True)
    return (
        db.session.query(InventoryPriceHistory)
        .filter_by(item_id=item_id)
        .order_by(InventoryPriceHistory.id.asc())
        .all()
    )
