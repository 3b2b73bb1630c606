# backend/kbpos/__init__.py
import logging
import time

from flask import Flask, request, g, jsonify

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("kbpos").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


def _register_error_handlers(app: Flask) -> None:
    from .services.concurrency import StorageError
    from .validation import ValidationError, ConflictError, NotFoundError
    from .responses import fail, invalid

    @app.errorhandler(404)
    def not_found(_e):
        return fail("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return fail("Method not allowed", 405)

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return invalid(e)

    @app.errorhandler(NotFoundError)
    def handle_not_found_error(e):
        return fail(str(e), 404)

    @app.errorhandler(ConflictError)
    def handle_conflict_error(e):
        return fail(str(e), 409)

    @app.errorhandler(StorageError)
    def handle_storage_error(_e):
        app.logger.exception("Storage unavailable during %s %s", request.method, request.path)
        db.session.rollback()
        return fail("Internal server error", 500)

    @app.errorhandler(500)
    def internal_error(_e):
        db.session.rollback()
        return fail("Internal server error", 500)


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.employees import employees_bp
    from .routes.sales import sales_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(sales_bp)

    _register_error_handlers(app)

    @app.before_request
    def start_timer():
        g.request_started = time.time()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        if started is not None:
            app.logger.info(
                "%s %s -> %s (%.4fs)",
                request.method, request.path, response.status_code, time.time() - started,
            )
        return response

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
