# Overview: Flask API routes for reference registries (suppliers, locations, categories, units).

"""
Reference Routes

All routes require actor headers (X-User-Id, X-Org-Id).
Suppliers and locations are scoped to the caller's organization;
categories and units are shared lookup data.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import page_args, require_actor
from ..errors import InventoryError
from ..services import reference_service


reference_bp = Blueprint("reference", __name__, url_prefix="/api/inventory")


def _error(e: InventoryError):
    return jsonify(e.to_dict()), e.status_code


# =============================================================================
# Suppliers
# =============================================================================

@reference_bp.get("/suppliers")
@require_actor
def list_suppliers_route():
    """
    List suppliers for the current organization.

    Query parameters:
    - include_inactive: Include inactive suppliers (default: false)
    - search: matches name or code
    - limit / offset

    Returns:
        {items: Supplier[], count: int, limit: int, offset: int}
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    limit, offset = page_args()

    suppliers, total = reference_service.list_suppliers(
        g.org_id,
        include_inactive=include_inactive,
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [s.to_dict() for s in suppliers],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@reference_bp.post("/suppliers")
@require_actor
def create_supplier_route():
    data = request.get_json(silent=True) or {}
    try:
        supplier = reference_service.create_supplier(g.org_id, data)
        return jsonify(supplier.to_dict()), 201
    except InventoryError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@reference_bp.get("/suppliers/<int:supplier_id>")
@require_actor
def get_supplier_route(supplier_id: int):
    try:
        return jsonify(reference_service.get_supplier(g.org_id, supplier_id).to_dict())
    except InventoryError as e:
        return _error(e)


@reference_bp.put("/suppliers/<int:supplier_id>")
@require_actor
def update_supplier_route(supplier_id: int):
    data = request.get_json(silent=True) or {}
    try:
        supplier = reference_service.update_supplier(g.org_id, supplier_id, data)
        return jsonify(supplier.to_dict())
    except InventoryError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@reference_bp.delete("/suppliers/<int:supplier_id>")
@require_actor
def delete_supplier_route(supplier_id: int):
    try:
        supplier = reference_service.delete_supplier(g.org_id, supplier_id)
        return jsonify(supplier.to_dict())
    except InventoryError as e:
        return _error(e)


# =============================================================================
# Locations
# =============================================================================

@reference_bp.get("/locations")
@require_actor
def list_locations_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    locations = reference_service.list_locations(
        g.org_id,
        include_inactive=include_inactive,
        location_type=request.args.get("location_type"),
    )
    return jsonify({
        "items": [loc.to_dict() for loc in locations],
        "count": len(locations),
    })


@reference_bp.post("/locations")
@require_actor
def create_location_route():
    data = request.get_json(silent=True) or {}
    try:
        location = reference_service.create_location(g.org_id, data)
        return jsonify(location.to_dict()), 201
    except InventoryError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create location")
        return jsonify({"error": "Internal server error"}), 500


@reference_bp.get("/locations/<int:location_id>")
@require_actor
def get_location_route(location_id: int):
    try:
        return jsonify(reference_service.get_location(g.org_id, location_id).to_dict())
    except InventoryError as e:
        return _error(e)


@reference_bp.put("/locations/<int:location_id>")
@require_actor
def update_location_route(location_id: int):
    data = request.get_json(silent=True) or {}
    try:
        location = reference_service.update_location(g.org_id, location_id, data)
        return jsonify(location.to_dict())
    except InventoryError as e:
        return _error(e)


@reference_bp.delete("/locations/<int:location_id>")
@require_actor
def delete_location_route(location_id: int):
    try:
        location = reference_service.delete_location(g.org_id, location_id)
        return jsonify(location.to_dict())
    except InventoryError as e:
        return _error(e)


# =============================================================================
# Categories / units
# =============================================================================

@reference_bp.get("/categories")
@require_actor
def list_categories_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    categories = reference_service.list_categories(include_inactive=include_inactive)
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)})


@reference_bp.post("/categories")
@require_actor
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(reference_service.create_category(data).to_dict()), 201
    except InventoryError as e:
        return _error(e)


@reference_bp.put("/categories/<int:category_id>")
@require_actor
def update_category_route(category_id: int):
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(reference_service.update_category(category_id, data).to_dict())
    except InventoryError as e:
        return _error(e)


@reference_bp.post("/categories/<int:category_id>/deactivate")
@require_actor
def deactivate_category_route(category_id: int):
    try:
        return jsonify(reference_service.deactivate_category(category_id).to_dict())
    except InventoryError as e:
        return _error(e)


@reference_bp.get("/units")
@require_actor
def list_units_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    units = reference_service.list_units(include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in units], "count": len(units)})


@reference_bp.post("/units")
@require_actor
def create_unit_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(reference_service.create_unit(data).to_dict()), 201
    except InventoryError as e:
        return _error(e)


@reference_bp.put("/units/<int:unit_id>")
@require_actor
def update_unit_route(unit_id: int):
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(reference_service.update_unit(unit_id, data).to_dict())
    except InventoryError as e:
        return _error(e)


@reference_bp.post("/units/<int:unit_id>/deactivate")
@require_actor
def deactivate_unit_route(unit_id: int):
    try:
        return jsonify(reference_service.deactivate_unit(unit_id).to_dict())
    except InventoryError as e:
        return _error(e)
