"""
Configuration for the Uniform Order Portal.

The upstream uniform API is required. The portal never invents limits of
its own: if the upstream is unreachable every item fails closed to the
conservative per-item defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so environment variables are available for Config
load_dotenv(override=True)

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_NAME = "uniform_portal_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # Upstream uniform REST API
    UPSTREAM_API_URL = os.environ.get("UPSTREAM_API_URL", "http://localhost:5000/api")
    UPSTREAM_TIMEOUT_SECONDS = float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", "10"))

    # Socket.IO bus (same host as the API by default)
    SOCKET_URL = os.environ.get("SOCKET_URL", "http://localhost:5000")
    SOCKET_ENABLED = os.environ.get("SOCKET_ENABLED", "1") == "1"

    # Limits and realtime threads (tests drive the services by hand)
    START_BACKGROUND_SERVICES = True

    # ==========================================================================
    # Limit snapshot refresh
    # ==========================================================================
    # Snapshots are refreshed on explicit triggers (checkout, cancel, claim,
    # visibility regain, socket push) and by this periodic poll.
    # ==========================================================================
    LIMITS_REFRESH_INTERVAL_SECONDS = float(
        os.environ.get("LIMITS_REFRESH_INTERVAL_SECONDS", "30")
    )

    # ==========================================================================
    # QR receipt validity
    # ==========================================================================
    # Counted in weekdays (Mon-Fri). Must equal the upstream
    # VOID_UNCLAIMED_AFTER_DAYS or receipts outlive their orders.
    # ==========================================================================
    QR_VALID_DAYS = int(os.environ.get("QR_VALID_DAYS", "7"))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    ENVIRONMENT = "testing"
    SECRET_KEY = "test-secret-key"
    SOCKET_ENABLED = False
    START_BACKGROUND_SERVICES = False
