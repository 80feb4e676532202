"""
routes/csrf.py — CSRF token issuance.

  GET /api/csrf-token → 200 {"csrf_token": "..."} + csrf_token cookie

The body copy is what client code echoes back in the X-CSRF-Token header;
the httpOnly cookie is what the server compares it with.
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from shopfront.app.extensions import db
from shopfront.app.middleware.csrf_middleware import set_csrf_cookie
from shopfront.app.services import csrf_service, session_service

csrf_bp = Blueprint("csrf", __name__)


@csrf_bp.route("/csrf-token", methods=["GET"])
def issue_csrf_token():
    """GET /api/csrf-token — Works with or without a login session."""
    config = current_app.config
    login_session = session_service.find_active_session(
        request.cookies.get(config["AUTH_COOKIE_NAME"]),
        db.session,
    )
    token = csrf_service.issue_token(
        login_session,
        session=db.session,
        pinning=config["CSRF_SESSION_PINNING"],
    )
    response = jsonify({"csrf_token": token})
    return set_csrf_cookie(response, token), 200
