# Overview: Flask API routes for physical counts; parses input and returns JSON responses.

"""
Physical Count Routes

WORKFLOW:
1. POST /counts          - plan (planned) or, with "start": true, plan and snapshot
2. POST /counts/:id/start - snapshot system quantities (in_progress)
3. POST /counts/:id/record - record counted quantities
4. POST /counts/:id/complete - post adjustments for variances (completed)
5. POST /counts/:id/cancel - cancel without adjustments
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import page_args, require_actor
from ..errors import InventoryError
from ..services import count_service


counts_bp = Blueprint("counts", __name__, url_prefix="/api/inventory/counts")


@counts_bp.get("")
@require_actor
def list_counts_route():
    limit, offset = page_args()
    try:
        counts, total = count_service.list_counts(
            g.org_id,
            status=request.args.get("status"),
            count_type=request.args.get("count_type"),
            limit=limit,
            offset=offset,
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [count.to_dict() for count in counts],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@counts_bp.post("")
@require_actor
def create_count_route():
    """
    Plan a count.

    Request body:
    {
        "count_type": "cycle",   // full | cycle | spot
        "location_id": 1,        // optional scope
        "item_ids": [1, 2],      // required for spot counts
        "count_date": "...",     // optional
        "notes": "...",
        "start": false           // true: snapshot immediately
    }
    """
    data = request.get_json(silent=True) or {}

    count_type = data.get("count_type")
    if not count_type:
        return jsonify({"error": "count_type is required"}), 400

    try:
        if data.get("start") is True:
            count = count_service.begin_count(
                g.org_id,
                count_type,
                location_id=data.get("location_id"),
                item_ids=data.get("item_ids"),
                notes=data.get("notes"),
                created_by=g.user_id,
            )
        else:
            count = count_service.create_count(
                g.org_id,
                count_type,
                location_id=data.get("location_id"),
                item_ids=data.get("item_ids"),
                count_date=data.get("count_date"),
                notes=data.get("notes"),
                created_by=g.user_id,
            )
        return jsonify(count.to_dict(include_lines=True)), 201
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("/<int:count_id>")
@require_actor
def get_count_route(count_id: int):
    try:
        return jsonify(count_service.get_count(g.org_id, count_id).to_dict(include_lines=True))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@counts_bp.get("/<int:count_id>/summary")
@require_actor
def count_summary_route(count_id: int):
    try:
        return jsonify(count_service.get_count_summary(g.org_id, count_id))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@counts_bp.post("/<int:count_id>/start")
@require_actor
def start_count_route(count_id: int):
    try:
        count = count_service.start_count(g.org_id, count_id)
        return jsonify(count.to_dict(include_lines=True))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:count_id>/record")
@require_actor
def record_count_route(count_id: int):
    """
    Record counted quantities.

    Request body: {"item_id": 1, "counted_quantity": "12", "notes": "..."}
    or {"lines": [{"item_id": 1, "counted_quantity": "12"}, ...]}
    """
    data = request.get_json(silent=True) or {}
    entries = data.get("lines")
    if entries is None:
        entries = [data]
    if not isinstance(entries, list):
        return jsonify({"error": "lines must be a list"}), 400

    recorded = []
    try:
        for entry in entries:
            item_id = entry.get("item_id") if isinstance(entry, dict) else None
            if not isinstance(item_id, int) or isinstance(item_id, bool):
                return jsonify({"error": "item_id is required"}), 400
            line = count_service.record_count(
                g.org_id,
                count_id,
                item_id,
                entry.get("counted_quantity"),
                counted_by=g.user_id,
                notes=entry.get("notes"),
            )
            recorded.append(line.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"items": recorded, "count": len(recorded)})


@counts_bp.post("/<int:count_id>/complete")
@require_actor
def complete_count_route(count_id: int):
    try:
        count = count_service.complete_count(g.org_id, count_id, completed_by=g.user_id)
        return jsonify(count.to_dict(include_lines=True))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:count_id>/cancel")
@require_actor
def cancel_count_route(count_id: int):
    try:
        return jsonify(count_service.cancel_count(g.org_id, count_id).to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
