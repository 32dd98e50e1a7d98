"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the metadata without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a custom JSON provider to serialise Decimal as string
     (monetary amounts are transmitted as strings, never JS numbers)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from groupsplit.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.
# All monetary amounts are serialised as strings to preserve precision.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
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
                     Defaults to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from groupsplit.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from groupsplit.app.models import (  # noqa: F401
            assigned_expense,
            expense,
            friendship,
            group,
            group_member,
            profile,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Sets the level for the app logger and the groupsplit.* module loggers.

    Module loggers propagate to the root logger; a basic stderr handler is
    installed only if nothing else (e.g. gunicorn, pytest) configured one.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)
    logging.getLogger("groupsplit").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource.
    """
    from groupsplit.app.routes.assignments import assignments_bp
    from groupsplit.app.routes.auth import auth_bp
    from groupsplit.app.routes.expenses import expenses_bp
    from groupsplit.app.routes.friends import friends_bp
    from groupsplit.app.routes.groups import groups_bp
    from groupsplit.app.routes.health import health_bp
    from groupsplit.app.routes.profiles import profiles_bp

    app.register_blueprint(auth_bp,        url_prefix="/api/v1/auth")
    app.register_blueprint(profiles_bp,    url_prefix="/api/v1/profiles")
    app.register_blueprint(friends_bp,     url_prefix="/api/v1/friends")
    app.register_blueprint(groups_bp,      url_prefix="/api/v1/groups")
    # expenses_bp owns BOTH /groups/<id>/expenses AND /expenses/<id>.
    app.register_blueprint(expenses_bp,    url_prefix="/api/v1")
    app.register_blueprint(assignments_bp, url_prefix="/api/v1/assignments")
    app.register_blueprint(health_bp,      url_prefix="/api/v1")


def _first_schema_error(messages) -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages dict down to the first leaf message.

    Returns (top-level field name or None, message).
        {"assigned": {0: {"amount": ["Not a valid number."]}}}
        → ("assigned", "Not a valid number.")
    """
    field = None
    current = messages
    while True:
        if isinstance(current, dict):
            if not current:
                return field, "Invalid input."
            key, current = next(iter(current.items()))
            if field is None and isinstance(key, str) and key != "_schema":
                field = key
        elif isinstance(current, list):
            if not current:
                return field, "Invalid input."
            current = current[0]
        else:
            return field, str(current)


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD / registered-code responses (400)
      HTTPException   → werkzeug 404 / 405 etc. in the same envelope
      SQLAlchemyError → DEPENDENCY_FAILURE (500) for failures outside a
                        dependency_guard block
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Every handler rolls back the session so a failed request never leaves
    partial writes behind. Stack traces never leave the server.
    """
    from groupsplit.app.errors import AppError, ErrorCode
    from groupsplit.app.extensions import db

    known_codes = {v for k, v in vars(ErrorCode).items() if not k.startswith("_")}

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Routes never catch AppError — they let it propagate here.
        """
        db.session.rollback()
        if error.http_status >= 500:
            app.logger.error("%r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST error is returned. The code is taken from the message
        if the message is itself a registered ErrorCode; otherwise it is
        MISSING_FIELD or INVALID_FIELD.
        """
        db.session.rollback()
        field, raw_message = _first_schema_error(error.messages)

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = f"{field} is required." if field else raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"error": message, "code": code}
        if field is not None:
            body["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        db.session.rollback()
        code = ErrorCode.INVALID_FIELD if error.code == 400 else error.name.upper().replace(" ", "_")
        return jsonify({"error": error.description, "code": code}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.error("Unguarded persistence failure on %s %s: %s", request.method, request.path, error)
        return jsonify({
            "error": "The request could not be completed. Please try again later.",
            "code": ErrorCode.DEPENDENCY_FAILURE,
        }), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback is logged to the application logger.
        """
        db.session.rollback()
        app.logger.error(
            "Unhandled exception: %s\n%s",
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

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with credentials (the session cookie).
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all and origin:
            # Credentialed requests require the exact origin, never "*".
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a schema ValidationError message IS the error code constant.
    """
    _messages = {
        "INVALID_AMOUNT": "Amount must be a positive number no greater than 9999999999.99.",
        "INVALID_AMOUNT_PRECISION": "Amounts must have at most 2 decimal places.",
        "INVALID_SPLIT_MODE": "split_mode must be 'equal' or 'custom'.",
        "DUPLICATE_ASSIGNEE": "The same member appears more than once in the split.",
        "INVALID_ROLE": "Role must be MODERATOR or MEMBER.",
    }
    return _messages.get(code, "Invalid input.")
