from __future__ import annotations

from typing import Any, Optional


# Balances and single balance changes are bounded by one billion
MAX_BALANCE = 1_000_000_000

MAX_USERNAME_LENGTH = 10


class CourierError(Exception):
    """Base class for every error a request handler can report."""
    status_code = 500


class ValidationError(CourierError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthError(CourierError):
    """401-level credential problem (missing, revoked or mismatched)."""
    status_code = 401


class PermissionDeniedError(AuthError):
    """403-level role problem: caller is authenticated but not allowed."""
    status_code = 403


class NotFoundError(CourierError):
    """404-level unknown user or item."""
    status_code = 404


class StateError(CourierError):
    """409-level lifecycle conflict (item not due, already received)."""
    status_code = 409


class StorageError(CourierError):
    """500-level store failure."""
    status_code = 500


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON and query-string input.

    Accepts ints and plain digit strings. Rejects bools, floats,
    decimals and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def optional_int(payload: dict, field: str) -> Optional[int]:
    """Coerce ``payload[field]`` if present and not null, else None."""
    value = payload.get(field)
    if value is None:
        return None
    return coerce_int(value, field)


def require_fields(payload: Any, *fields: str) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if f not in payload or payload[f] is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def clean_str(value: Any, field: str, *, allow_blank: bool = True, max_length: int | None = None) -> str:
    if value is None:
        value = ""
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{field} must be a string")
    text = str(value).strip()
    if not allow_blank and text == "":
        raise ValidationError(f"{field} cannot be blank")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def validate_username(username: Any) -> str:
    if not isinstance(username, str):
        raise ValidationError("username must be a string")
    if len(username) == 0 or len(username) > MAX_USERNAME_LENGTH:
        raise ValidationError(f"Username must be 1 to {MAX_USERNAME_LENGTH} characters long")
    return username


def check_balance_delta(delta: int) -> None:
    if delta > MAX_BALANCE or delta < -MAX_BALANCE:
        raise ValidationError(f"A single balance change cannot exceed {MAX_BALANCE}")


def check_balance_bounds(balance: int) -> None:
    if balance < 0:
        raise ValidationError("Balance cannot be negative")
    if balance > MAX_BALANCE:
        raise ValidationError(f"Balance cannot exceed {MAX_BALANCE}")
