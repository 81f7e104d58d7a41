"""
Services layer for the Uniform Order Portal.

This module contains the business logic services:
- LimitsService: Per-student limit snapshots with a background refresh thread
- CatalogService: Cached, grouped catalog items
- OrderService: Checkout, cancel, pre-order conversion and receipts
- RealtimeService: Socket.IO listener that turns pushes into triggers

Thread Model:
    Main Thread (Flask requests, order mutations)
    ├── Limits thread (trigger-driven fetches + 30-second poll)
    └── Realtime thread (Socket.IO event bus)

Every fetch builds its own UniformAPIClient bound to the student's token,
so no HTTP session is shared between threads.
"""

from .limits_service import LimitsService
from .catalog_service import CatalogService
from .order_service import OrderService, InFlightRegistry
from .realtime_service import RealtimeService

__all__ = [
    "LimitsService",
    "CatalogService",
    "OrderService",
    "InFlightRegistry",
    "RealtimeService",
]
