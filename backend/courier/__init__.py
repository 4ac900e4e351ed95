# backend/courier/__init__.py
from pathlib import Path

from flask import Flask

from .config import Config
from .extensions import db, migrate
from .logging_config import setup_logging


MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"), app.config.get("LOG_FILE"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR))

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.items import items_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(items_bp)

    # Tables and the administrator must exist before the first request;
    # a failure here aborts startup
    if app.config.get("AUTO_BOOTSTRAP", True):
        from .services.maintenance_service import init_store
        with app.app_context():
            init_store()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
