"""
tests/unit/conftest.py — Shared fixtures for unit tests.

Unit tests use no database: SQLAlchemy sessions are MagicMock objects. A
bare Flask app context is pushed only for the services that read
current_app.config.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from flask import Flask

# Registers every mapper so string relationships resolve when models are built.
from shopfront.app.models import catalog, order, session, session_data, user  # noqa: F401


@pytest.fixture
def app_ctx():
    flask_app = Flask(__name__)
    flask_app.config.update(
        PBKDF2_ITERATIONS=1_000,
        MIN_PASSWORD_LENGTH=8,
        SESSION_TTL=timedelta(hours=6),
    )
    with flask_app.app_context():
        yield flask_app
