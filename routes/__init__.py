"""
Flask route blueprints for the Uniform Order Portal.

This module contains all route handlers organized by functionality:
- auth: Sign in / sign out
- catalog: Product list and detail with eligibility decisions
- cart: Session cart with clamped quantities
- orders: Order tabs, checkout, cancel, convert, receipts
- api: Health check and limit snapshot endpoints

Each blueprint is registered with the Flask app in create_app().
"""

from .auth import auth_bp
from .catalog import catalog_bp
from .cart import cart_bp
from .orders import orders_bp
from .api import api_bp

__all__ = [
    "auth_bp",
    "catalog_bp",
    "cart_bp",
    "orders_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(api_bp)
