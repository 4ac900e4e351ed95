"""
Pytest fixtures for courier backend tests.

Provides an in-memory application, a per-test clean database with the
administrator account, customer accounts and credential helpers.
"""

import pytest

from courier import create_app
from courier.extensions import db
from courier.services import auth_service, session_service


ADMIN_USERNAME = "ADMINISTRATOR"
ADMIN_PASSWORD = "123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ITEM_TRANSIT_DAYS': 1,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database for each test; only the administrator exists."""
    # reset-db tests may have dropped the tables
    db.create_all()

    # Clear all data but keep schema
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    auth_service.ensure_administrator()
    db.session.commit()

    yield db.session

    db.session.rollback()


def make_customer(username: str, password: str = "pw", balance: int = 0):
    """Register a customer and optionally fund it."""
    user = auth_service.register_user(username, password, name=username.title())
    if balance:
        user.balance = balance
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def alice(db_session):
    return make_customer("alice", "pw1", balance=100)


@pytest.fixture(scope='function')
def bob(db_session):
    return make_customer("bob", "pw2")


@pytest.fixture(scope='function')
def alice_credential(alice):
    return session_service.login("alice", "pw1")


@pytest.fixture(scope='function')
def bob_credential(bob):
    return session_service.login("bob", "pw2")


@pytest.fixture(scope='function')
def admin_credential(db_session):
    return session_service.login(ADMIN_USERNAME, ADMIN_PASSWORD)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
