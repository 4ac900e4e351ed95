# backend/courier/routes/users.py
"""
User administration and balance routes.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import courier_service
from ..decorators import require_auth, outcome_response


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
def list_users_route():
    """
    List every account (administrator only).

    Returns:
        200: {"users": [...]}
        403: Caller is not the administrator
    """
    try:
        outcome = courier_service.list_all_users(g.credential)
        return outcome_response(outcome, key="users")

    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("/balance")
@require_auth
def adjust_balance_route():
    """
    Change a balance.

    Request body:
    {
        "delta": int,
        "username": str (optional, administrator only when not the caller)
    }

    Returns:
        200: {"username": str, "balance": int}
        400: Delta out of range or balance would leave [0, 1e9]
    """
    try:
        data = request.get_json(silent=True) or {}
        if "delta" not in data:
            return jsonify({"error": "Missing required field: delta"}), 400

        outcome = courier_service.adjust_balance(
            g.credential,
            data["delta"],
            username=data.get("username"),
        )
        return outcome_response(outcome)

    except Exception:
        current_app.logger.exception("Failed to adjust balance")
        return jsonify({"error": "Internal server error"}), 500
