# Overview: Flask API routes for purchase order workflow; parses input and returns JSON responses.

"""
Purchase Order Routes

WORKFLOW:
draft -> pending_approval -> approved -> sent -> partially_received -> received -> closed
Any state before received may be cancelled; cancelled orders may be closed.

Lines may only be edited while the order is a draft.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import page_args, require_actor
from ..errors import InventoryError
from ..services import purchase_order_service
from ..validation import parse_datetime


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/inventory/purchase-orders")


def _order_response(order, status: int = 200):
    return jsonify(order.to_dict(include_lines=True)), status


@purchase_orders_bp.get("")
@require_actor
def list_purchase_orders_route():
    """
    List purchase orders (without lines).

    Query parameters: status, supplier_id, from_date, to_date, limit, offset
    """
    limit, offset = page_args()
    try:
        orders, total = purchase_order_service.list_purchase_orders(
            g.org_id,
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id", type=int),
            from_date=parse_datetime(request.args.get("from_date"), "from_date"),
            to_date=parse_datetime(request.args.get("to_date"), "to_date"),
            limit=limit,
            offset=offset,
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [order.to_dict(include_lines=False) for order in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_orders_bp.post("")
@require_actor
def create_purchase_order_route():
    """
    Create a draft purchase order.

    Request body:
    {
        "supplier_id": 1,                      // required
        "expected_delivery_date": "...",
        "ship_to_location_id": 2,
        "tax_amount": "0", "shipping_cost": "0",
        "lines": [{"item_id": 1, "quantity_ordered": "10", "unit_cost": "2.50"}]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = purchase_order_service.create_purchase_order(g.org_id, data, created_by=g.user_id)
        return _order_response(order, 201)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:order_id>")
@require_actor
def get_purchase_order_route(order_id: int):
    try:
        return _order_response(purchase_order_service.get_purchase_order(g.org_id, order_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.put("/<int:order_id>")
@require_actor
def update_purchase_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        return _order_response(purchase_order_service.update_purchase_order(g.org_id, order_id, data))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.delete("/<int:order_id>")
@require_actor
def delete_purchase_order_route(order_id: int):
    try:
        return _order_response(purchase_order_service.delete_purchase_order(g.org_id, order_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# Lines
# =============================================================================

@purchase_orders_bp.post("/<int:order_id>/lines")
@require_actor
def add_line_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        line = purchase_order_service.add_line(g.org_id, order_id, data)
        return jsonify(line.to_dict()), 201
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.put("/<int:order_id>/lines/<int:line_id>")
@require_actor
def update_line_route(order_id: int, line_id: int):
    data = request.get_json(silent=True) or {}
    try:
        line = purchase_order_service.update_line(g.org_id, order_id, line_id, data)
        return jsonify(line.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.delete("/<int:order_id>/lines/<int:line_id>")
@require_actor
def remove_line_route(order_id: int, line_id: int):
    try:
        return _order_response(purchase_order_service.remove_line(g.org_id, order_id, line_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# Transitions
# =============================================================================

@purchase_orders_bp.post("/<int:order_id>/submit")
@require_actor
def submit_purchase_order_route(order_id: int):
    try:
        return _order_response(purchase_order_service.submit_purchase_order(g.org_id, order_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.post("/<int:order_id>/approve")
@require_actor
def approve_purchase_order_route(order_id: int):
    try:
        order = purchase_order_service.approve_purchase_order(g.org_id, order_id, approved_by=g.user_id)
        return _order_response(order)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:order_id>/send")
@require_actor
def send_purchase_order_route(order_id: int):
    try:
        return _order_response(purchase_order_service.send_purchase_order(g.org_id, order_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.post("/<int:order_id>/receive")
@require_actor
def receive_purchase_order_route(order_id: int):
    """
    Receive stock against lines.

    Request body:
    {
        "receipts": [{"line_id": 1, "quantity": "4"}, {"item_id": 7, "quantity": "2"}],
        "location_id": 3   // optional, defaults to the order's ship-to location
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = purchase_order_service.receive_purchase_order(
            g.org_id,
            order_id,
            data.get("receipts"),
            performed_by=g.user_id,
            location_id=data.get("location_id"),
        )
        return _order_response(order)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:order_id>/cancel")
@require_actor
def cancel_purchase_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = purchase_order_service.cancel_purchase_order(g.org_id, order_id, reason=data.get("reason"))
        return _order_response(order)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.post("/<int:order_id>/close")
@require_actor
def close_purchase_order_route(order_id: int):
    try:
        return _order_response(purchase_order_service.close_purchase_order(g.org_id, order_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.post("/<int:order_id>/payments")
@require_actor
def record_payment_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = purchase_order_service.record_payment(g.org_id, order_id, data.get("amount"))
        return _order_response(order)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
