# backend/courier/routes/items.py
"""
Item API routes: query, send, receive and administrative delete.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import courier_service
from ..decorators import require_auth, outcome_response


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


# Query-string parameters understood by GET /api/items
QUERY_PARAMS = (
    "type",
    "id",
    "sendingTime_Year",
    "sendingTime_Month",
    "sendingTime_Day",
    "receivingTime_Year",
    "receivingTime_Month",
    "receivingTime_Day",
    "srcName",
    "dstName",
)


@items_bp.get("")
@require_auth
def query_items_route():
    """
    Filtered item query.

    Query params:
        type: 0 = all items (administrator), 1 = sent by me, 2 = to be received by me
        id, sendingTime_Year/Month/Day, receivingTime_Year/Month/Day,
        srcName, dstName: optional, ANDed together

    Returns:
        200: {"items": [...], "count": int}
    """
    try:
        payload = {k: request.args[k] for k in QUERY_PARAMS if k in request.args}
        outcome = courier_service.query_items(g.credential, payload)
        if not outcome.ok:
            return outcome_response(outcome)
        return jsonify({"items": outcome.value, "count": len(outcome.value)}), 200

    except Exception:
        current_app.logger.exception("Failed to query items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.post("")
@require_auth
def send_item_route():
    """
    Send an item.

    Request body:
    {
        "dstName": str,
        "type": int (0 fragile, 1 book, 2 normal) or category name,
        "amount": int,
        "description": str
    }

    Returns:
        201: {"id": int, "cost": int, "balance": int}
        400: Invalid request or insufficient balance
        404: Recipient does not exist
    """
    try:
        data = request.get_json(silent=True) or {}
        outcome = courier_service.send_item(g.credential, data)
        return outcome_response(outcome, status=201)

    except Exception:
        current_app.logger.exception("Failed to send item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.post("/<int:item_id>/receive")
@require_auth
def receive_item_route(item_id: int):
    """
    Receive an item addressed to the caller.

    Returns:
        200: The received item
        403: Item belongs to someone else
        404: Item not found
        409: Not due yet, or already received
    """
    try:
        outcome = courier_service.receive_item(g.credential, {"id": item_id})
        return outcome_response(outcome, key="item")

    except Exception:
        current_app.logger.exception("Failed to receive item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.delete("/<int:item_id>")
@require_auth
def delete_item_route(item_id: int):
    """Delete an item (administrator only)."""
    try:
        outcome = courier_service.delete_item(g.credential, item_id)
        return outcome_response(outcome)

    except Exception:
        current_app.logger.exception("Failed to delete item")
        return jsonify({"error": "Internal server error"}), 500
