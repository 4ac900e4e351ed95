from __future__ import annotations

from ..extensions import db
from courier.time_utils import to_utc_z


ROLE_CUSTOMER = "CUSTOMER"
ROLE_ADMINISTRATOR = "ADMINISTRATOR"
ROLES = (ROLE_CUSTOMER, ROLE_ADMINISTRATOR)


class User(db.Model):
    """
    Customer and administrator accounts.

    The username is the primary key; items reference it directly.
    Balance is an integer bounded to [0, 1e9] by the ledger service.
    Users are never deleted.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
        db.CheckConstraint(f"role IN ('{ROLE_CUSTOMER}', '{ROLE_ADMINISTRATOR}')", name="ck_users_role"),
    )

    username = db.Column(db.String(32), primary_key=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_CUSTOMER)
    balance = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(120), nullable=False, default="")
    phone = db.Column(db.String(32), nullable=False, default="")
    address = db.Column(db.String(255), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_administrator(self) -> bool:
        return self.role == ROLE_ADMINISTRATOR

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "role": self.role,
            "balance": self.balance,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class UserSession(db.Model):
    """
    Live login session, at most one per username.

    A credential is only valid while its session row exists and the
    stored token hash matches. Logout deletes the row.
    """
    __tablename__ = "user_sessions"

    username = db.Column(db.String(32), db.ForeignKey("users.username"), primary_key=True)
    issuer = db.Column(db.String(64), nullable=False)

    # SHA-256 of the plaintext token (never store plaintext)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)

    user = db.relationship("User", backref=db.backref("session", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "issuer": self.issuer,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
        }
