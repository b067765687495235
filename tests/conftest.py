"""
Shared fixtures.

The database is a throwaway SQLite file; DATABASE_URL must be set before
`db` is imported anywhere, so it happens at the top of this module.
"""

import http.cookies
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="finance-tracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SESSION_SECRET"] = "test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from db import Base, SessionLocal, engine  # noqa: E402
from models import Balance  # noqa: E402
from app.services import auth  # noqa: E402

TEST_PASSWORD = "Sup3r$ecret"


def cookie_pair(set_cookie_header: str) -> tuple[str, str]:
    """(name, value) from a Set-Cookie header value."""
    cookie = http.cookies.SimpleCookie()
    cookie.load(set_cookie_header)
    (name, morsel), = cookie.items()
    return name, morsel.value


def cookie_header(*set_cookie_headers: str) -> str:
    """Turn Set-Cookie header values into a request Cookie header."""
    return "; ".join(f"{name}={value}" for name, value in map(cookie_pair, set_cookie_headers))


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    return auth.register(
        db,
        auth.RegisterForm(
            email="jane@example.com",
            password=TEST_PASSWORD,
            confirm_password=TEST_PASSWORD,
            full_name="Jane Doe",
        ),
    )


@pytest.fixture
def funded_user(db, user):
    balance = db.query(Balance).filter(Balance.user_id == user.id).one()
    balance.current = 1000
    db.commit()
    return user


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def logged_in_client(client, user):
    response = client.post(
        "/login",
        data={"email": "jane@example.com", "password": TEST_PASSWORD},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client
