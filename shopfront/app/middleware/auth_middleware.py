"""
middleware/auth_middleware.py — Session authentication decorators.

@require_auth:
  1. Reads the `session_id` cookie
  2. Validates it through session_service (exists AND not expired)
  3. Loads the owning user
  4. Attaches user_id, is_admin, session_token and session_record to flask.g
  5. Lets the AppError propagate if any step fails (401, or 500 when the
     session store itself fails)

@require_admin:
  Composes @require_auth, then raises FORBIDDEN (403) for non-admins.

Strict responsibility boundary:
  - Middleware = authentication (401) and the role gate (403).
  - Ownership checks (e.g. "is this your order?") stay in the services,
    which receive user_id as a plain integer argument.

Cookie helpers (set_session_cookie / clear_session_cookie) live here so the
login, logout and error-handler paths all write the cookie the same way.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.extensions import db
from shopfront.app.models.user import User
from shopfront.app.services import session_service


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces a valid login session.

    Usage:
        @orders_bp.route("/user", methods=["GET"])
        @require_auth
        def list_my_orders():
            user_id = g.user_id  # always an int when this runs
            ...

    Place it above @require_csrf so an unauthenticated request is answered
    with 401 before any CSRF check.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def require_admin(f: Callable) -> Callable:
    """Route decorator: valid session AND is_admin, else 401 / 403."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        if not g.is_admin:
            raise AppError(
                ErrorCode.FORBIDDEN,
                "Administrator access is required.",
                403,
            )
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Validates the session cookie and populates flask.g.

    Separated from the decorator wrapper for testability.
    """
    raw_token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
    record = session_service.validate_session(raw_token, db.session)

    user = db.session.get(User, record.user_id)
    if user is None:
        # ON DELETE CASCADE normally removes the session with its user.
        raise AppError(
            ErrorCode.SESSION_INVALID,
            "Your session is invalid. Please log in again.",
            401,
        )

    g.user_id = user.id
    g.is_admin = bool(user.is_admin)
    g.session_token = raw_token
    g.session_record = record


def set_session_cookie(response, raw_token: str):
    config = current_app.config
    response.set_cookie(
        config["AUTH_COOKIE_NAME"],
        raw_token,
        max_age=int(config["SESSION_TTL"].total_seconds()),
        httponly=True,
        secure=config["COOKIE_SECURE"],
        samesite="Strict",
        path="/",
    )
    return response


def clear_session_cookie(response):
    config = current_app.config
    response.delete_cookie(
        config["AUTH_COOKIE_NAME"],
        path="/",
        httponly=True,
        secure=config["COOKIE_SECURE"],
        samesite="Strict",
    )
    return response
