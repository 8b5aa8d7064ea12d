# Overview: Flask API routes for the transaction ledger and transfers.

"""
Ledger Routes

The ledger is append-only: there are no update or delete endpoints.
Quantities are signed (issue / write_off negative, adjustment either sign).
Transfers post two rows sharing a transfer_group.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import page_args, require_actor
from ..errors import InventoryError
from ..services import ledger_service
from ..validation import parse_datetime


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/inventory")


@transactions_bp.get("/transactions")
@require_actor
def list_transactions_route():
    """
    List ledger rows, newest first.

    Query parameters:
    - item_id, transaction_type, job_id, bid_id, purchase_order_id, location_id
    - from_date / to_date: ISO-8601 bounds on created_at
    - limit / offset
    """
    limit, offset = page_args()
    try:
        rows, total = ledger_service.list_transactions(
            g.org_id,
            item_id=request.args.get("item_id", type=int),
            transaction_type=request.args.get("transaction_type"),
            job_id=request.args.get("job_id"),
            bid_id=request.args.get("bid_id"),
            purchase_order_id=request.args.get("purchase_order_id", type=int),
            location_id=request.args.get("location_id", type=int),
            from_date=parse_datetime(request.args.get("from_date"), "from_date"),
            to_date=parse_datetime(request.args.get("to_date"), "to_date"),
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


@transactions_bp.get("/transactions/<int:transaction_id>")
@require_actor
def get_transaction_route(transaction_id: int):
    try:
        return jsonify(ledger_service.get_transaction(g.org_id, transaction_id).to_dict())
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@transactions_bp.post("/transactions")
@require_actor
def append_transaction_route():
    """
    Append one ledger row.

    Request body:
    {
        "item_id": 1,                   // required
        "transaction_type": "receipt",  // required
        "quantity": "10",               // required, signed
        "unit_cost": "2.50",            // optional
        "location_id": 3,               // optional, defaults to the item's primary location
        "job_id" / "bid_id", "batch_number", "serial_number",
        "expiration_date", "reference_number", "notes"
    }
    """
    data = request.get_json(silent=True) or {}

    item_id = data.get("item_id")
    if not isinstance(item_id, int) or isinstance(item_id, bool):
        return jsonify({"error": "item_id is required"}), 400
    transaction_type = data.get("transaction_type")
    if not transaction_type:
        return jsonify({"error": "transaction_type is required"}), 400

    try:
        row = ledger_service.append_transaction(
            org_id=g.org_id,
            item_id=item_id,
            transaction_type=transaction_type,
            quantity=data.get("quantity"),
            performed_by=g.user_id,
            unit_cost=data.get("unit_cost"),
            location_id=data.get("location_id"),
            job_id=data.get("job_id"),
            bid_id=data.get("bid_id"),
            batch_number=data.get("batch_number"),
            serial_number=data.get("serial_number"),
            expiration_date=data.get("expiration_date"),
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
        )
        return jsonify(row.to_dict()), 201
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to append transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/transfers")
@require_actor
def transfer_route():
    """
    Move stock between locations.

    Request body: {item_id, quantity, from_location_id, to_location_id,
    reference_number?, notes?}

    Returns:
        {transfer_group, transactions: [outbound, inbound]} (201)
    """
    data = request.get_json(silent=True) or {}

    item_id = data.get("item_id")
    if not isinstance(item_id, int) or isinstance(item_id, bool):
        return jsonify({"error": "item_id is required"}), 400

    try:
        rows = ledger_service.transfer_stock(
            org_id=g.org_id,
            item_id=item_id,
            quantity=data.get("quantity"),
            from_location_id=data.get("from_location_id"),
            to_location_id=data.get("to_location_id"),
            performed_by=g.user_id,
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
        )
        return jsonify({
            "transfer_group": rows[0].transfer_group,
            "transactions": [row.to_dict() for row in rows],
        }), 201
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Internal server error"}), 500
