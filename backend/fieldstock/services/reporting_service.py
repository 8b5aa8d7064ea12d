# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Category, InventoryItem, InventoryStockAlert, Location
from ..models.reference import decimal_str
from .item_service import STATUS_LOW_STOCK, STATUS_OUT_OF_STOCK


def _live_items(org_id: int):
    return db.session.query(InventoryItem).filter(
        InventoryItem.org_id == org_id,
        InventoryItem.is_deleted.is_(False),
    )


def _value_expr():
    return func.coalesce(func.sum(InventoryItem.quantity_on_hand * InventoryItem.unit_cost), 0)


def _money(value) -> str:
    return decimal_str(Decimal(value or 0).quantize(Decimal("0.01")))


def dashboard_summary(org_id: int) -> dict:
    base = _live_items(org_id)
    total_items = base.count()
    active_items = base.filter(InventoryItem.is_active.is_(True)).count()
    low_stock = base.filter(InventoryItem.status == STATUS_LOW_STOCK).count()
    out_of_stock = base.filter(InventoryItem.status == STATUS_OUT_OF_STOCK).count()

    value = (
        db.session.query(_value_expr())
        .filter(InventoryItem.org_id == org_id, InventoryItem.is_deleted.is_(False))
        .scalar()
    )

    unresolved = (
        db.session.query(func.count(InventoryStockAlert.id))
        .filter(InventoryStockAlert.org_id == org_id, InventoryStockAlert.is_resolved.is_(False))
        .scalar()
    )
    critical = (
        db.session.query(func.count(InventoryStockAlert.id))
        .filter(
            InventoryStockAlert.org_id == org_id,
            InventoryStockAlert.is_resolved.is_(False),
            InventoryStockAlert.severity == "critical",
        )
        .scalar()
    )

    return {
        "total_items": total_items,
        "active_items": active_items,
        "low_stock_items": low_stock,
        "out_of_stock_items": out_of_stock,
        "inventory_value": _money(value),
        "unresolved_alerts": int(unresolved or 0),
        "critical_alerts": int(critical or 0),
    }


def stats_by_status(org_id: int) -> list[dict]:
    rows = (
        db.session.query(
            InventoryItem.status,
            func.count(InventoryItem.id).label("item_count"),
            func.coalesce(func.sum(InventoryItem.quantity_on_hand), 0).label("quantity"),
            _value_expr().label("value"),
        )
        .filter(InventoryItem.org_id == org_id, InventoryItem.is_deleted.is_(False))
        .group_by(InventoryItem.status)
        .order_by(InventoryItem.status.asc())
        .all()
    )
    return [
        {
            "status": row.status,
            "item_count": int(row.item_count or 0),
            "quantity_on_hand": decimal_str(Decimal(row.quantity or 0)),
            "inventory_value": _money(row.value),
        }
        for row in rows
    ]


def stats_by_category(org_id: int) -> list[dict]:
    """Items grouped by category; uncategorised items report category_id None."""
    rows = (
        db.session.query(
            InventoryItem.category_id,
            Category.name,
            func.count(InventoryItem.id).label("item_count"),
            _value_expr().label("value"),
        )
        .outerjoin(Category, Category.id == InventoryItem.category_id)
        .filter(InventoryItem.org_id == org_id, InventoryItem.is_deleted.is_(False))
        .group_by(InventoryItem.category_id, Category.name)
        .order_by(Category.name.asc())
        .all()
    )
    return [
        {
            "category_id": row.category_id,
            "category_name": row.name,
            "item_count": int(row.item_count or 0),
            "inventory_value": _money(row.value),
        }
        for row in rows
    ]


def stats_by_location(org_id: int) -> list[dict]:
    """Items grouped by primary location."""
    rows = (
        db.session.query(
            InventoryItem.primary_location_id,
            Location.code,
            Location.name,
            func.count(InventoryItem.id).label("item_count"),
            _value_expr().label("value"),
        )
        .outerjoin(Location, Location.id == InventoryItem.primary_location_id)
        .filter(InventoryItem.org_id == org_id, InventoryItem.is_deleted.is_(False))
        .group_by(InventoryItem.primary_location_id, Location.code, Location.name)
        .order_by(Location.code.asc())
        .all()
    )
    return [
        {
            "location_id": row.primary_location_id,
            "location_code": row.code,
            "location_name": row.name,
            "item_count": int(row.item_count or 0),
            "inventory_value": _money(row.value),
        }
        for row in rows
    ]
