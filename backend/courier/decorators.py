# Overview: Request decorators and response helpers for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.session_service import Credential


def _bearer_credential() -> Credential | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return Credential.decode(auth_header.split(" ", 1)[1].strip())


def require_auth(f):
    """
    Require a well-formed credential in the Authorization header.

    Sets g.credential for the route. Whether the credential still refers
    to a live session is decided by the request handler, which returns
    401 when it does not.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        credential = _bearer_credential()
        if credential is None:
            return jsonify({"error": "Authentication required"}), 401

        g.credential = credential
        return f(*args, **kwargs)

    return decorated_function


def outcome_response(outcome, *, status: int = 200, key: str | None = None):
    """
    Turn a request-handler Outcome into a JSON response.

    Errors use the status code of their error class and an
    {"error": message} body.
    """
    if not outcome.ok:
        return jsonify({"error": outcome.message}), outcome.status_code
    if key is not None:
        return jsonify({key: outcome.value}), status
    if outcome.value is None:
        return jsonify({"message": "OK"}), status
    return jsonify(outcome.value), status
