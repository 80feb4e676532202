"""
middleware/csrf_middleware.py — Double-submit CSRF check for mutating routes.

@require_csrf:
  - GET / HEAD / OPTIONS pass through untouched.
  - Otherwise the `csrf_token` cookie must equal the submitted value, read
    from the X-CSRF-Token header, else the JSON body `csrf_token`, else the
    form field `csrf_token`.
  - When the request carries a valid login session and pinning is enabled,
    csrf_service also enforces the session's pinned token.

Anonymous requests (guest checkout, login itself) are protected by the
double-submit check alone.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request

from shopfront.app.extensions import db
from shopfront.app.services import csrf_service, session_service

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
CSRF_FIELD_NAME = "csrf_token"


def require_csrf(f: Callable) -> Callable:
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if request.method not in SAFE_METHODS:
            _verify_request()
        return f(*args, **kwargs)

    return decorated


def _submitted_token() -> str | None:
    header_value = request.headers.get(current_app.config["CSRF_HEADER_NAME"])
    if header_value:
        return header_value

    body = request.get_json(silent=True)
    if isinstance(body, dict) and isinstance(body.get(CSRF_FIELD_NAME), str):
        return body[CSRF_FIELD_NAME]

    return request.form.get(CSRF_FIELD_NAME) or None


def _current_login_session():
    """Session row for this request, if any. Reuses the one @require_auth loaded."""
    record = getattr(g, "session_record", None)
    if record is not None:
        return record
    raw_token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
    return session_service.find_active_session(raw_token, db.session)


def _verify_request() -> None:
    config = current_app.config
    csrf_service.verify_request_token(
        cookie_token=request.cookies.get(config["CSRF_COOKIE_NAME"]),
        submitted_token=_submitted_token(),
        login_session=_current_login_session(),
        session=db.session,
        pinning=config["CSRF_SESSION_PINNING"],
    )


def set_csrf_cookie(response, token: str):
    config = current_app.config
    response.set_cookie(
        config["CSRF_COOKIE_NAME"],
        token,
        max_age=int(config["CSRF_TOKEN_TTL"].total_seconds()),
        httponly=True,
        secure=config["COOKIE_SECURE"],
        samesite="Strict",
        path="/",
    )
    return response
