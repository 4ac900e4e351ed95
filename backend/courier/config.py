# backend/courier/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/courier.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///courier.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Issuer tag carried by every credential; verify() rejects anything else
    SESSION_ISSUER = os.environ.get("SESSION_ISSUER", "courier-backend")

    # The single administrator account, created on first startup
    ADMIN_USERNAME = "ADMINISTRATOR"
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "123")
    ADMIN_NAME = os.environ.get("ADMIN_NAME", "Administrator1")
    ADMIN_PHONE = os.environ.get("ADMIN_PHONE", "88888888")
    ADMIN_ADDRESS = os.environ.get("ADMIN_ADDRESS", "Courier Logistics Tower")

    ITEM_TRANSIT_DAYS = int(os.environ.get("ITEM_TRANSIT_DAYS", "1"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")

    # Create tables and the administrator when the app starts.
    # Set AUTO_BOOTSTRAP=0 to let `flask db upgrade` own the schema.
    AUTO_BOOTSTRAP = os.environ.get("AUTO_BOOTSTRAP", "1").strip().lower() not in ("0", "false", "no", "off")
