# Overview: Flask API routes for account operations; parses input and returns JSON responses.

# backend/courier/routes/auth.py
"""
Account API routes: registration, login/logout, password and profile.

Login returns an opaque credential; send it back as
``Authorization: Bearer <credential>`` on every protected route.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import courier_service
from ..decorators import require_auth, outcome_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Register a customer account.

    Request body:
    {
        "username": str (1-10 chars),
        "password": str,
        "role": "CUSTOMER" (optional; "ADMINISTRATOR" is rejected),
        "name": str, "phone": str, "address": str (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        outcome = courier_service.register(
            username=username,
            password=password,
            role=data.get("role", "CUSTOMER"),
            name=data.get("name", ""),
            phone=data.get("phone", ""),
            address=data.get("address", ""),
        )
        return outcome_response(outcome, status=201, key="user")

    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and open a session.

    Returns the credential to use as a bearer token.

    Each user has at most one session. Logging in again rotates the token,
    so any credential issued earlier for the same user stops working.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        outcome = courier_service.login(username, password)
        if not outcome.ok:
            return outcome_response(outcome)

        credential = outcome.value
        return jsonify({
            "token": credential.encode(),
            "username": credential.username,
            "issuer": credential.issuer,
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Drop the caller's session. The same token is rejected afterwards.
    """
    try:
        outcome = courier_service.logout(g.credential)
        if not outcome.ok:
            return outcome_response(outcome)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/password")
@require_auth
def change_password_route():
    """
    Request body: {"new_password": str}
    """
    try:
        data = request.get_json(silent=True) or {}
        new_password = data.get("new_password")
        if not new_password:
            return jsonify({"error": "new_password required"}), 400

        outcome = courier_service.change_password(g.credential, new_password)
        if not outcome.ok:
            return outcome_response(outcome)
        return jsonify({"message": "Password changed"}), 200

    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Profile and balance of the caller."""
    try:
        outcome = courier_service.get_user_info(g.credential)
        return outcome_response(outcome, key="user")

    except Exception:
        current_app.logger.exception("Failed to load user info")
        return jsonify({"error": "Internal server error"}), 500
