# Overview: Service-layer operations for accounts; registration, password hashing and the administrator bootstrap.

"""
Account service.

Passwords are stored as bcrypt hashes; a login succeeds exactly when the
supplied password matches the one chosen at registration. Registration
always creates a Customer. The single Administrator is created by
ensure_administrator() at startup and can never be registered.
"""

import logging

import bcrypt
from flask import current_app

from ..models import User, ROLE_ADMINISTRATOR, ROLE_CUSTOMER, ROLES
from ..validation import NotFoundError, ValidationError, clean_str, validate_username
from . import store_service


logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    The cost factor comes from BCRYPT_ROUNDS (tests lower it to keep
    the suite fast).
    """
    if not isinstance(password, str) or password == "":
        raise ValidationError("Password cannot be blank")
    rounds = current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    if not isinstance(password, str):
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the store
        return False


def parse_role(role) -> str:
    """Accept a role name or the legacy numeric code (0 = customer, 1 = administrator)."""
    if isinstance(role, bool):
        raise ValidationError("Unknown role")
    if isinstance(role, int):
        codes = {0: ROLE_CUSTOMER, 1: ROLE_ADMINISTRATOR}
        if role not in codes:
            raise ValidationError("Unknown role")
        return codes[role]
    if isinstance(role, str) and role.strip().upper() in ROLES:
        return role.strip().upper()
    raise ValidationError("Unknown role")


def register_user(
    username: str,
    password: str,
    role=ROLE_CUSTOMER,
    name: str = "",
    phone: str = "",
    address: str = "",
) -> User:
    """
    Create a Customer account with a zero balance.

    Raises:
        ValidationError: bad username length, taken username, blank
            password, unknown role, or an attempt to register an
            Administrator
    """
    username = validate_username(username)
    role = parse_role(role)
    if role == ROLE_ADMINISTRATOR:
        raise ValidationError("Administrator accounts cannot be registered")

    user = store_service.insert_user(
        username=username,
        password_hash=hash_password(password),
        role=ROLE_CUSTOMER,
        balance=0,
        name=clean_str(name, "name", max_length=120),
        phone=clean_str(phone, "phone", max_length=32),
        address=clean_str(address, "address", max_length=255),
    )
    logger.info("Registered customer %s", username)
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the user when the password matches, otherwise None."""
    if not isinstance(username, str) or not username:
        return None
    user = store_service.get_user_by_username(username)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def change_password(username: str, new_password: str) -> None:
    password_hash = hash_password(new_password)
    if not store_service.update_user_field(username, "password_hash", password_hash):
        raise NotFoundError(f"User {username} not found")
    logger.info("Password changed for %s", username)


def ensure_administrator() -> User:
    """
    Create the administrator account if it does not exist yet.

    Safe to call repeatedly (idempotent); an existing administrator keeps
    its password and balance.
    """
    cfg = current_app.config
    username = cfg.get("ADMIN_USERNAME", "ADMINISTRATOR")
    existing = store_service.get_user_by_username(username)
    if existing is not None:
        return existing

    admin = store_service.upsert_user(
        username=username,
        password_hash=hash_password(cfg.get("ADMIN_PASSWORD", "123")),
        role=ROLE_ADMINISTRATOR,
        balance=0,
        name=cfg.get("ADMIN_NAME", ""),
        phone=cfg.get("ADMIN_PHONE", ""),
        address=cfg.get("ADMIN_ADDRESS", ""),
    )
    logger.info("Created administrator account %s", username)
    return admin


def administrator_username() -> str:
    return current_app.config.get("ADMIN_USERNAME", "ADMINISTRATOR")
