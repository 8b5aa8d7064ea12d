# Overview: Flask API routes for job/bid allocations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import page_args, require_actor
from ..errors import InventoryError
from ..services import allocation_service


allocations_bp = Blueprint("allocations", __name__, url_prefix="/api/inventory/allocations")


@allocations_bp.get("")
@require_actor
def list_allocations_route():
    limit, offset = page_args()
    try:
        rows, total = allocation_service.list_allocations(
            g.org_id,
            item_id=request.args.get("item_id", type=int),
            job_id=request.args.get("job_id"),
            bid_id=request.args.get("bid_id"),
            status=request.args.get("status"),
            limit=limit,
            offset=offset,
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [row.to_dict() for row in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@allocations_bp.post("")
@require_actor
def create_allocation_route():
    """
    Reserve stock for a job or a bid.

    Request body:
    {
        "item_id": 1,          // required
        "quantity": "5",       // required, > 0
        "job_id": "J-100",     // exactly one of job_id / bid_id
        "expected_use_date": "2024-06-01T08:00:00Z",
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}

    item_id = data.get("item_id")
    if not isinstance(item_id, int) or isinstance(item_id, bool):
        return jsonify({"error": "item_id is required"}), 400

    try:
        allocation = allocation_service.create_allocation(
            org_id=g.org_id,
            item_id=item_id,
            quantity=data.get("quantity"),
            job_id=data.get("job_id"),
            bid_id=data.get("bid_id"),
            allocated_by=g.user_id,
            expected_use_date=data.get("expected_use_date"),
            notes=data.get("notes"),
        )
        return jsonify(allocation.to_dict()), 201
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create allocation")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.get("/<int:allocation_id>")
@require_actor
def get_allocation_route(allocation_id: int):
    try:
        return jsonify(allocation_service.get_allocation(g.org_id, allocation_id).to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@allocations_bp.post("/<int:allocation_id>/issue")
@require_actor
def issue_allocation_route(allocation_id: int):
    try:
        allocation = allocation_service.issue_allocation(g.org_id, allocation_id, performed_by=g.user_id)
        return jsonify(allocation.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to issue allocation")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.post("/<int:allocation_id>/usage")
@require_actor
def record_usage_route(allocation_id: int):
    data = request.get_json(silent=True) or {}
    try:
        allocation = allocation_service.record_usage(g.org_id, allocation_id, data.get("quantity"))
        return jsonify(allocation.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@allocations_bp.post("/<int:allocation_id>/return")
@require_actor
def return_allocation_route(allocation_id: int):
    data = request.get_json(silent=True) or {}
    try:
        allocation = allocation_service.return_allocation(
            g.org_id, allocation_id, data.get("quantity"), performed_by=g.user_id
        )
        return jsonify(allocation.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to return allocation")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.post("/<int:allocation_id>/cancel")
@require_actor
def cancel_allocation_route(allocation_id: int):
    try:
        allocation = allocation_service.cancel_allocation(g.org_id, allocation_id)
        return jsonify(allocation.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
