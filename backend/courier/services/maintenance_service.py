# Overview: Service-layer operations for maintenance; schema bootstrap and resets.

from __future__ import annotations

import logging

from alembic.migration import MigrationContext
from alembic.script import ScriptDirectory
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..validation import StorageError
from . import auth_service


logger = logging.getLogger(__name__)


def stamp_schema_revision() -> str | None:
    """
    Record the migration head in alembic_version when no revision is recorded yet.

    Tables built by create_all match the head revision, so stamping keeps
    `flask db upgrade` a no-op on a bootstrapped database. A database that
    already carries a revision is left alone. Returns the recorded revision.
    """
    script = ScriptDirectory(current_app.extensions["migrate"].directory)
    with db.engine.begin() as connection:
        context = MigrationContext.configure(connection)
        current = context.get_current_revision()
        if current is None:
            current = script.get_current_head()
            context.stamp(script, current)
            logger.info("Stamped schema revision %s", current)
    return current


def init_store() -> None:
    """
    Create missing tables and the administrator account.

    Idempotent. A failure here is fatal: it raises StorageError and the
    application must not start.
    """
    try:
        db.create_all()
        stamp_schema_revision()
    except SQLAlchemyError as exc:
        logger.critical("Schema creation failed: %s", exc)
        raise StorageError("Schema creation failed") from exc

    try:
        auth_service.ensure_administrator()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.critical("Administrator bootstrap failed: %s", exc)
        raise StorageError("Administrator bootstrap failed") from exc


def reset_store() -> None:
    """DEV/TEST only: drop every table and bootstrap again."""
    db.session.remove()
    db.drop_all()
    logger.warning("All tables dropped")
    init_store()
