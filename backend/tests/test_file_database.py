"""
Tests against a file-backed SQLite database.

Verifies:
- `flask db upgrade` builds the schema when startup bootstrap is off
- A bootstrapped database is stamped, so upgrading it is a no-op
- Concurrent sends from one account keep the ledger consistent
- Of two concurrent receives of the same item exactly one succeeds
"""

import importlib
import threading
from datetime import date

import pytest
from flask_migrate import upgrade
from sqlalchemy import inspect

from conftest import ADMIN_USERNAME, make_customer
from courier import config as courier_config
from courier import create_app
from courier.extensions import db
from courier.models import Item, User
from courier.services import courier_service, ledger_service, session_service
from courier.services.maintenance_service import init_store, stamp_schema_revision


HEAD_REVISION = "c0u1r2i3e4r5"
COURIER_TABLES = {"users", "user_sessions", "items", "item_sequences"}


def _file_app(tmp_path, **overrides):
    config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'courier.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ITEM_TRANSIT_DAYS': 1,
        'LOG_LEVEL': 'WARNING',
    }
    config.update(overrides)
    return create_app(config)


@pytest.fixture
def file_app(tmp_path):
    app = _file_app(tmp_path)
    with app.app_context():
        yield app
        db.session.remove()
        db.engine.dispose()


def _run_in_threads(app, target, count):
    """Run target() in `count` threads, each inside its own app context."""
    results = []
    barrier = threading.Barrier(count)

    def worker():
        with app.app_context():
            barrier.wait(timeout=5)
            results.append(target())

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


# =============================================================================
# SCHEMA MIGRATIONS
# =============================================================================


class TestSchemaMigrations:

    @pytest.mark.parametrize("value,expected", [("0", False), ("off", False), ("1", True), ("yes", True)])
    def test_auto_bootstrap_read_from_environment(self, monkeypatch, value, expected):
        monkeypatch.setenv("AUTO_BOOTSTRAP", value)
        try:
            assert importlib.reload(courier_config).Config.AUTO_BOOTSTRAP is expected
        finally:
            monkeypatch.delenv("AUTO_BOOTSTRAP")
            importlib.reload(courier_config)

    def test_upgrade_builds_schema_without_bootstrap(self, tmp_path):
        app = _file_app(tmp_path, AUTO_BOOTSTRAP=False)
        with app.app_context():
            try:
                assert not COURIER_TABLES & set(inspect(db.engine).get_table_names())

                upgrade()

                tables = set(inspect(db.engine).get_table_names())
                assert COURIER_TABLES <= tables
                assert "alembic_version" in tables
                assert stamp_schema_revision() == HEAD_REVISION

                init_store()
                assert db.session.get(User, ADMIN_USERNAME) is not None
            finally:
                db.session.remove()
                db.engine.dispose()

    def test_bootstrapped_database_is_stamped(self, file_app):
        assert stamp_schema_revision() == HEAD_REVISION
        # Tables already exist; the upgrade must not try to create them again
        upgrade()
        assert stamp_schema_revision() == HEAD_REVISION

    def test_restart_keeps_data(self, tmp_path):
        app = _file_app(tmp_path)
        with app.app_context():
            make_customer("alice", "pw1", balance=40)
            db.session.remove()
            db.engine.dispose()

        app = _file_app(tmp_path)
        with app.app_context():
            try:
                assert ledger_service.get_balance("alice") == 40
            finally:
                db.session.remove()
                db.engine.dispose()


# =============================================================================
# CONCURRENT REQUESTS
# =============================================================================


class TestConcurrentRequests:

    def test_concurrent_sends_from_one_account(self, file_app):
        make_customer("alice", "pw1", balance=100)
        make_customer("bob", "pw2")
        credential = session_service.login("alice", "pw1")
        db.session.remove()

        # NORMAL costs 5 per unit: 30 per send, so only three of four fit
        info = {"dstName": "bob", "type": 2, "amount": 6, "description": "box"}
        outcomes = _run_in_threads(file_app, lambda: courier_service.send_item(credential, info), 4)

        assert len(outcomes) == 4
        sent = [o for o in outcomes if o.ok]
        assert len(sent) == 3
        assert all(o.status_code == 400 for o in outcomes if not o.ok)

        total_cost = sum(o.value["cost"] for o in sent)
        assert ledger_service.get_balance("alice") == 100 - total_cost
        assert ledger_service.get_balance(ADMIN_USERNAME) == total_cost
        assert db.session.query(Item).count() == len(sent)
        assert len({o.value["id"] for o in sent}) == len(sent)

    def test_concurrent_receives_of_one_item(self, file_app, monkeypatch):
        make_customer("alice", "pw1", balance=100)
        make_customer("bob", "pw2")
        sender = session_service.login("alice", "pw1")
        receiver = session_service.login("bob", "pw2")

        monkeypatch.setattr("courier.time_utils.today", lambda: date(2026, 3, 1))
        sent = courier_service.send_item(
            sender, {"dstName": "bob", "type": 1, "amount": 1, "description": "book"}
        )
        assert sent.ok
        db.session.remove()

        monkeypatch.setattr("courier.time_utils.today", lambda: date(2026, 3, 2))
        outcomes = _run_in_threads(
            file_app, lambda: courier_service.receive_item(receiver, {"id": sent.value["id"]}), 2
        )

        assert sorted(o.ok for o in outcomes) == [False, True]
        failed = next(o for o in outcomes if not o.ok)
        assert failed.status_code == 409
        item = db.session.get(Item, sent.value["id"])
        assert item.to_dict()["state"] == "RECEIVED"
