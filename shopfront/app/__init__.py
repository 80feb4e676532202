"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic and the `flask` CLI to work without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  3. Register all route blueprints under /api
  4. Register global error handlers (AppError → JSON, Exception → 500)
  5. Register a custom JSON provider to serialise Decimal as string
  6. Register the operator CLI commands (app/cli.py)
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from shopfront.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Serialises Decimal as a string so prices keep their exact value.

    Example: Decimal("3.30") → "3.30" (not 3.3)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))
    logging.getLogger("shopfront").setLevel(app.logger.level)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from shopfront.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Populates SQLAlchemy's MetaData for create_all() and Alembic.
    with app.app_context():
        from shopfront.app.models import (  # noqa: F401
            catalog,
            order,
            session,
            session_data,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    from shopfront.app.cli import register_commands
    register_commands(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints.

    The url_prefix is set here so individual route files only specify the
    path relative to their resource.
    """
    from shopfront.app.routes.auth import auth_bp
    from shopfront.app.routes.catalog import catalog_bp, frontend_bp
    from shopfront.app.routes.csrf import csrf_bp
    from shopfront.app.routes.orders import orders_bp

    app.register_blueprint(auth_bp,     url_prefix="/api/auth")
    app.register_blueprint(csrf_bp,     url_prefix="/api")
    app.register_blueprint(orders_bp,   url_prefix="/api/orders")
    app.register_blueprint(frontend_bp, url_prefix="/api/frontend")
    # Admin catalog routes sit directly under /api (/api/categories, /api/products, /api/stats).
    app.register_blueprint(catalog_bp,  url_prefix="/api")


def _first_validation_message(messages) -> tuple[str | None, str]:
    """
    Returns (field, message) for the first error in a marshmallow messages tree.

    Nested list errors ({"items": {0: {"quantity": [...]}}}) report the
    top-level field name and the innermost message.
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            field = key if isinstance(key, str) and key != "_schema" else None
            _, message = _first_validation_message(value)
            return field, message
    if isinstance(messages, list) and messages:
        first = messages[0]
        if isinstance(first, (dict, list)):
            return _first_validation_message(first)
        return None, str(first)
    if isinstance(messages, str):
        return None, messages
    return None, "Invalid input."


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → {"error", "code"[, "field"]} with the error's status;
                        an invalid or expired session also clears its cookie
      ValidationError → first marshmallow error as MISSING_FIELD /
                        INVALID_FIELD / a registered code (400)
      HTTPException   → Werkzeug errors (404, 405, ...) in the same JSON shape
      Exception       → INTERNAL_ERROR (500); traceback logged, never returned
    """
    from shopfront.app.errors import AppError, ErrorCode, code_to_message, is_registered_code
    from shopfront.app.middleware.auth_middleware import clear_session_cookie

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error body.

        Routes never catch AppError — they let it propagate here.
        """
        response = jsonify(error.to_dict())
        if error.code in (ErrorCode.SESSION_INVALID, ErrorCode.SESSION_EXPIRED):
            clear_session_cookie(response)
        return response, error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """Only the first error is reported: one error, not many."""
        field, raw_message = _first_validation_message(error.messages)

        if is_registered_code(raw_message):
            code = raw_message
            message = code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = f"{field} is required." if field else raw_message
        elif field == "items":
            code = ErrorCode.INVALID_ITEMS
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"error": message, "code": code}
        if field is not None:
            body["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({
            "error": error.description or error.name,
            "code": error.name.upper().replace(" ", "_"),
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        The full traceback goes to the application logger. Stack traces
        never leave the server in the response body.
        """
        app.logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.path,
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a storefront served from another
    local port can call the API with its cookies.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all and origin:
            # Credentialed requests need the exact origin, never "*".
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = (
                f"Content-Type, {app.config['CSRF_HEADER_NAME']}"
            )

        return response
