# Overview: Flask API routes for the item registry; parses input and returns JSON responses.

"""
Item Routes

All routes require actor headers (X-User-Id, X-Org-Id). Items are scoped to
the caller's organization.

Quantity fields and status are never writable here; they change only
through the ledger, allocation, purchase order and count endpoints.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import page_args, require_actor
from ..errors import InventoryError
from ..services import item_service, ledger_service


items_bp = Blueprint("items", __name__, url_prefix="/api/inventory/items")


@items_bp.get("")
@require_actor
def list_items_route():
    """
    List items.

    Query parameters:
    - category_id, status, supplier_id, location_id: filters
    - search: matches name, item code, part number or barcode
    - include_deleted: default false
    - limit / offset

    Returns:
        {items: Item[], count: int, limit: int, offset: int}
    """
    limit, offset = page_args()
    include_deleted = request.args.get("include_deleted", "false").lower() == "true"

    try:
        items, total = item_service.list_items(
            g.org_id,
            category_id=request.args.get("category_id", type=int),
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id", type=int),
            location_id=request.args.get("location_id", type=int),
            search=request.args.get("search"),
            include_deleted=include_deleted,
            limit=limit,
            offset=offset,
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [item.to_dict() for item in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@items_bp.post("")
@require_actor
def create_item_route():
    """
    Register an item.

    Request body: item fields plus optional initial_quantity (and
    initial unit_cost) booked as an initial_stock ledger row.

    Returns:
        Created Item object (201)
    """
    data = request.get_json(silent=True) or {}
    try:
        item = item_service.create_item(g.org_id, data, performed_by=g.user_id)
        return jsonify(item.to_dict()), 201
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>")
@require_actor
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(g.org_id, item_id)
        return jsonify(item.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.put("/<int:item_id>")
@items_bp.patch("/<int:item_id>")
@require_actor
def update_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = item_service.update_item(g.org_id, item_id, data, performed_by=g.user_id)
        return jsonify(item.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.delete("/<int:item_id>")
@require_actor
def delete_item_route(item_id: int):
    """Soft delete. 409 while the item has open allocations or undelivered order lines."""
    try:
        item = item_service.soft_delete_item(g.org_id, item_id, performed_by=g.user_id)
        return jsonify(item.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@items_bp.get("/<int:item_id>/history")
@require_actor
def item_history_route(item_id: int):
    try:
        rows = item_service.get_item_history(g.org_id, item_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [row.to_dict() for row in rows], "count": len(rows)})


@items_bp.get("/<int:item_id>/price-history")
@require_actor
def price_history_route(item_id: int):
    try:
        rows = item_service.get_price_history(g.org_id, item_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [row.to_dict() for row in rows], "count": len(rows)})


@items_bp.get("/<int:item_id>/locations")
@require_actor
def location_balances_route(item_id: int):
    """Per-location stock derived from the ledger."""
    try:
        balances = ledger_service.get_location_balances(g.org_id, item_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"item_id": item_id, "locations": balances})


@items_bp.get("/<int:item_id>/verify")
@require_actor
def verify_item_route(item_id: int):
    """Replay the ledger for one item and compare it with the cached quantities."""
    try:
        item = item_service.get_item(g.org_id, item_id, include_deleted=True)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(ledger_service.verify_item_projection(item))
