# Overview: Service-layer operations for sessions; credential issue, verification and revocation.

"""
Session Management Service

A credential carries {issuer, username, token}. It is only a reference to
server-side state: verify() succeeds when the issuer tag is the expected
one AND the user has a live row in user_sessions whose token hash matches.
Logging out deletes the row, so a credential stops working even though
its own fields never change.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- At most one session per username; logging in again rotates the token
- Revocable on logout or from the sessions CLI
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
from dataclasses import dataclass, asdict

from flask import current_app

from ..extensions import db
from ..models import User, UserSession
from ..validation import AuthError, PermissionDeniedError
from . import auth_service, store_service
from courier.time_utils import utcnow


logger = logging.getLogger(__name__)

DEFAULT_ISSUER = "courier-backend"


@dataclass(frozen=True)
class Credential:
    """
    Opaque session reference handed to clients.

    Travels over HTTP as ``Authorization: Bearer <encode()>``.
    """
    issuer: str
    username: str
    token: str

    def encode(self) -> str:
        raw = json.dumps(asdict(self), separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    @classmethod
    def decode(cls, value: str) -> Credential | None:
        """Parse an encoded credential; None if it is malformed."""
        try:
            data = json.loads(base64.urlsafe_b64decode(value.encode("ascii")))
        except (binascii.Error, ValueError, UnicodeError, AttributeError):
            return None
        if not isinstance(data, dict):
            return None
        fields = (data.get("issuer"), data.get("username"), data.get("token"))
        if not all(isinstance(f, str) for f in fields):
            return None
        return cls(*fields)


def expected_issuer() -> str:
    return current_app.config.get("SESSION_ISSUER", DEFAULT_ISSUER)


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 of the token; tokens are high-entropy so a fast hash is enough."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def login(username: str, password: str) -> Credential:
    """
    Check the password and open (or reuse) the user's session.

    Reusing keeps the session row and its created_at but rotates the token,
    so only the newest credential for a username is valid.

    Raises AuthError on a wrong username or password.
    """
    user = auth_service.authenticate(username, password)
    if user is None:
        logger.warning("Failed login for %s", username)
        raise AuthError("Invalid username or password")

    token = generate_token()
    now = utcnow()
    issuer = expected_issuer()

    with store_service.storage_guard(f"opening session for {username}"):
        session = db.session.get(UserSession, user.username)
        if session is None:
            session = UserSession(
                username=user.username,
                issuer=issuer,
                token_hash=hash_token(token),
                created_at=now,
                last_used_at=now,
            )
            db.session.add(session)
        else:
            session.issuer = issuer
            session.token_hash = hash_token(token)
            session.last_used_at = now
        db.session.commit()

    logger.info("User %s logged in", user.username)
    return Credential(issuer=issuer, username=user.username, token=token)


def _live_session(credential: Credential | None) -> UserSession | None:
    if credential is None:
        return None
    if not hmac.compare_digest(credential.issuer.encode("utf-8"), expected_issuer().encode("utf-8")):
        return None
    session = db.session.get(UserSession, credential.username)
    if session is None:
        return None
    if not hmac.compare_digest(session.token_hash.encode("utf-8"), hash_token(credential.token).encode("utf-8")):
        return None
    return session


def verify(credential: Credential | None) -> str:
    """
    Return the username the credential belongs to, or "" if it is not valid.

    Updates last_used_at on success; the caller's commit persists it.
    """
    with store_service.storage_guard("verifying a session"):
        session = _live_session(credential)
        if session is None:
            logger.warning("Credential verification failed")
            return ""
        session.last_used_at = utcnow()
    logger.debug("Verified session for %s", session.username)
    return session.username


def logout(credential: Credential | None) -> None:
    """Drop the caller's session. Raises AuthError if the credential is not live."""
    username = verify(credential)
    if not username:
        raise AuthError("Verification failed")
    drop_sessions_for(username)
    logger.info("User %s logged out", username)


def drop_sessions_for(username: str) -> bool:
    """Delete the user's session row; returns False when none was open."""
    with store_service.storage_guard(f"dropping session for {username}"):
        session = db.session.get(UserSession, username)
        if session is None:
            return False
        db.session.delete(session)
        db.session.commit()
    return True


def active_sessions() -> list[UserSession]:
    with store_service.storage_guard("listing sessions"):
        return db.session.query(UserSession).order_by(UserSession.username).all()

def require_user(credential: Credential | None) -> User:
    """Verify the credential and load the caller. Raises AuthError."""
    username = verify(credential)
    if not username:
        raise AuthError("Verification failed")
    user = store_service.get_user_by_username(username)
    if user is None:
        raise AuthError("Verification failed")
    return user

def require_role(username: str, role: str) -> User:
    """Raise PermissionDeniedError unless the stored role of username is role."""
    user = store_service.get_user_by_username(username)
    if user is None:
        raise AuthError("Verification failed")
    if user.role != role:
        raise PermissionDeniedError(f"Operation requires the {role.lower()} role")
    return user
