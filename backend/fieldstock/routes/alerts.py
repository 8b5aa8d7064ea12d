# Overview: Flask API routes for stock alerts; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bool_arg, page_args, require_actor
from ..errors import InventoryError
from ..services import alert_service


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/inventory/alerts")


@alerts_bp.get("")
@require_actor
def list_alerts_route():
    """
    List alerts, newest first.

    Query parameters: item_id, alert_type, severity, is_resolved,
    is_acknowledged, limit, offset
    """
    limit, offset = page_args()
    try:
        alerts, total = alert_service.list_alerts(
            g.org_id,
            item_id=request.args.get("item_id", type=int),
            alert_type=request.args.get("alert_type"),
            severity=request.args.get("severity"),
            is_resolved=bool_arg("is_resolved"),
            is_acknowledged=bool_arg("is_acknowledged"),
            limit=limit,
            offset=offset,
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [alert.to_dict() for alert in alerts],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@alerts_bp.post("/check")
@require_actor
def run_alert_check_route():
    """Sweep the caller's organization and raise missing alerts."""
    try:
        result = alert_service.run_alert_check(org_id=g.org_id)
        return jsonify(result)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to run alert check")
        return jsonify({"error": "Internal server error"}), 500


@alerts_bp.get("/<int:alert_id>")
@require_actor
def get_alert_route(alert_id: int):
    try:
        return jsonify(alert_service.get_alert(g.org_id, alert_id).to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@alerts_bp.post("/<int:alert_id>/acknowledge")
@require_actor
def acknowledge_alert_route(alert_id: int):
    try:
        alert = alert_service.acknowledge_alert(g.org_id, alert_id, user_id=g.user_id)
        return jsonify(alert.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@alerts_bp.post("/<int:alert_id>/resolve")
@require_actor
def resolve_alert_route(alert_id: int):
    data = request.get_json(silent=True) or {}
    try:
        alert = alert_service.resolve_alert(g.org_id, alert_id, user_id=g.user_id, notes=data.get("notes"))
        return jsonify(alert.to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
