"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call the service layer
  - Commit the DB session
  - Return a small JSON body; cookies are written through the middleware helpers

No business logic here. No DB queries. No bare SQL.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (url_prefix=/api/auth):
  POST   /login            → 200  (CSRF)
  POST   /logout           → 200  (session + CSRF)
  GET    /user             → 200  (session)
  POST   /change-password  → 200  (session + CSRF)
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from shopfront.app.extensions import db
from shopfront.app.middleware.auth_middleware import (
    clear_session_cookie,
    require_auth,
    set_session_cookie,
)
from shopfront.app.middleware.csrf_middleware import require_csrf
from shopfront.app.schemas.auth_schema import ChangePasswordSchema, LoginSchema
from shopfront.app.services import credential_service, session_service

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _request_data() -> dict:
    """JSON body, or the submitted form for plain HTML form posts."""
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        return body
    return request.form.to_dict()


@auth_bp.route("/login", methods=["POST"])
@require_csrf
def login():
    """POST /api/auth/login — Verify credentials and start a new session."""
    data = LoginSchema().load(_request_data())
    user = credential_service.verify_credentials(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    raw_token = session_service.create_session(user.id, session=db.session)
    db.session.commit()

    logger.info("User id=%s logged in", user.id)
    response = jsonify({
        "success": True,
        "user": credential_service.build_user_dict(user),
    })
    return set_session_cookie(response, raw_token), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
@require_csrf
def logout():
    """POST /api/auth/logout — Destroy the current session. Idempotent."""
    session_service.destroy_session(g.session_token, session=db.session)
    db.session.commit()

    logger.info("User id=%s logged out", g.user_id)
    return clear_session_cookie(jsonify({"success": True})), 200


@auth_bp.route("/user", methods=["GET"])
@require_auth
def current_user():
    """GET /api/auth/user — Return {email, is_admin} for the session's user."""
    result = credential_service.get_current_user(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify(result), 200


@auth_bp.route("/change-password", methods=["POST"])
@require_auth
@require_csrf
def change_password():
    """POST /api/auth/change-password — Replace the password; every session ends."""
    data = ChangePasswordSchema().load(_request_data())
    credential_service.change_password(
        user_id=g.user_id,
        current_password=data["current_password"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    response = jsonify({
        "success": True,
        "message": "Password changed. Please log in again.",
    })
    return clear_session_cookie(response), 200
