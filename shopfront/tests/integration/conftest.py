"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against TEST_DATABASE_URL, defaulting to in-memory SQLite.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_user(app, ...)           → user id
  - get_csrf(client)              → token (cookie set on the client)
  - login(client, ...)            → csrf token to reuse for later requests
  - csrf_headers(token)           → {"X-CSRF-Token": token}
  - make_category / make_product  → ids, created directly through the services
  - session_cookie(client)        → raw session_id cookie value or None

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import delete

from shopfront.app import create_app
from shopfront.app.extensions import db as _db
from shopfront.app.models.catalog import Category, Product
from shopfront.app.models.order import Order, OrderItem
from shopfront.app.models.session import Session
from shopfront.app.models.session_data import SessionData
from shopfront.app.models.user import User
from shopfront.app.services import catalog_service, credential_service

DEFAULT_PASSWORD = "Password1"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test, children before parents.
    """
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for model in (SessionData, Session, OrderItem, Order, Product, Category, User):
            _db.session.execute(delete(model))
        _db.session.commit()


@pytest.fixture
def client(app):
    """Flask test client with its own cookie jar."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_user(
    app,
    email: str = "alice@test.com",
    password: str = DEFAULT_PASSWORD,
    is_admin: bool = False,
) -> int:
    with app.app_context():
        user = credential_service.create_user(
            email=email,
            password=password,
            session=_db.session,
            is_admin=is_admin,
        )
        _db.session.commit()
        return user.id


def get_csrf(client) -> str:
    resp = client.get("/api/csrf-token")
    assert resp.status_code == 200, f"csrf-token failed: {resp.get_json()}"
    return resp.get_json()["csrf_token"]


def csrf_headers(token: str) -> dict:
    return {"X-CSRF-Token": token}


def login(client, email: str = "alice@test.com", password: str = DEFAULT_PASSWORD) -> str:
    """Logs in through the API and returns the CSRF token the client should keep using."""
    token = get_csrf(client)
    resp = client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
        headers=csrf_headers(token),
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return token


def session_cookie(client) -> str | None:
    cookie = client.get_cookie("session_id")
    return cookie.value if cookie is not None else None


def make_category(app, name: str = "Fruit") -> int:
    with app.app_context():
        category = catalog_service.create_category(name, session=_db.session)
        _db.session.commit()
        return category.catid


def make_product(
    app,
    catid: int,
    name: str = "Apple",
    price: str = "3.30",
    description: str | None = "Fresh",
) -> int:
    with app.app_context():
        product = catalog_service.create_product(
            {
                "catid": catid,
                "name": name,
                "price": Decimal(price),
                "description": description,
                "image": None,
            },
            session=_db.session,
        )
        _db.session.commit()
        return product.pid
