"""
Uniform Order Portal - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up logging
2. Starts the limits service (separate thread)
3. Creates the catalog and order services
4. Starts the realtime listener (separate thread, optional)
5. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (reads snapshots, runs order mutations)
    └── Cleanup on shutdown

    Limits Thread (background)
    └── Trigger-driven fetches + 30-second poll, one API client per fetch

    Realtime Thread (background)
    └── Socket.IO listener that only bumps trigger counters

Snapshots are immutable and swapped whole, so request threads never see
a half-applied refresh.
"""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv
from flask import Flask

from logging_config import setup_logging, get_logger
from core.api_client import UniformAPIClient
from core.exceptions import UniformPortalError
from services.limits_service import LimitsService
from services.catalog_service import CatalogService
from services.order_service import OrderService
from services.realtime_service import RealtimeService
from routes import register_blueprints
from routes.common import json_error, portal_error_response


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def create_app(
    config_object: str = "config.Config",
    api_client_factory: Optional[Callable[[Optional[str]], UniformAPIClient]] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
        api_client_factory: Builds a client for a bearer token (tests inject a mock)

    Returns:
        Configured Flask application
    """
    # Use override=True so .env file always takes precedence over shell environment
    base_path = Path(__file__).parent
    env_file = base_path / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        app_name="uniform_portal",
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Uniform Order Portal in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # UPSTREAM CLIENTS
    # =========================================================================

    if api_client_factory is None:
        base_url = app.config["UPSTREAM_API_URL"]
        timeout = app.config["UPSTREAM_TIMEOUT_SECONDS"]

        def api_client_factory(token: Optional[str] = None) -> UniformAPIClient:
            return UniformAPIClient(base_url, token=token, timeout=timeout, logger=get_logger("core.api_client"))

    def student_client(student):
        return api_client_factory(student.token if student else None)

    app.config["API_CLIENT_FACTORY"] = api_client_factory

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    start_background = app.config.get("START_BACKGROUND_SERVICES", True)

    limits_service = LimitsService(
        student_client,
        refresh_interval_seconds=app.config["LIMITS_REFRESH_INTERVAL_SECONDS"],
    )
    if start_background:
        limits_service.start()
        logger.info("Limits service started")
    app.config["LIMITS_SERVICE"] = limits_service

    catalog_service = CatalogService(student_client)
    app.config["CATALOG_SERVICE"] = catalog_service

    order_service = OrderService(
        limits_service,
        catalog_service,
        student_client,
        qr_valid_days=app.config["QR_VALID_DAYS"],
    )
    app.config["ORDER_SERVICE"] = order_service

    realtime_service = None
    if app.config.get("SOCKET_ENABLED"):
        realtime_service = RealtimeService(
            app.config["SOCKET_URL"],
            limits_service,
            catalog_service,
            order_service,
        )
        if start_background:
            realtime_service.start()
            logger.info("Realtime listener started")
    app.config["REALTIME_SERVICE"] = realtime_service

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")

        if realtime_service:
            realtime_service.stop()

        if limits_service:
            limits_service.stop()

        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(UniformPortalError)
    def handle_portal_error(e):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e}")
        else:
            logger.info(f"{type(e).__name__}: {e}")
        return portal_error_response(e)

    @app.errorhandler(404)
    def handle_not_found(e):
        return json_error("Not found", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return json_error("Method not allowed", 405)

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return json_error("An unexpected error occurred. Please try again.", 500)

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second set of background threads
    app.run(debug=debug_mode, use_reloader=False)
