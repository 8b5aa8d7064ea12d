from flask import Blueprint, g, jsonify

from ..decorators import require_actor
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/inventory/reports")


@reports_bp.get("/dashboard")
@require_actor
def dashboard_route():
    return jsonify(reporting_service.dashboard_summary(g.org_id)), 200


@reports_bp.get("/by-status")
@require_actor
def stats_by_status_route():
    return jsonify({"rows": reporting_service.stats_by_status(g.org_id)}), 200


@reports_bp.get("/by-category")
@require_actor
def stats_by_category_route():
    return jsonify({"rows": reporting_service.stats_by_category(g.org_id)}), 200


@reports_bp.get("/by-location")
@require_actor
def stats_by_location_route():
    return jsonify({"rows": reporting_service.stats_by_location(g.org_id)}), 200
