"""
Data models for the Uniform Order Portal.

This module contains dataclasses for:
- Item / ItemGroup: Catalog rows and their per-product grouping
- Order / OrderLine: Orders as last seen from the upstream API
- CartLine: Session-only cart contents
- LimitSnapshot: Point-in-time per-student limits
- Student: The signed-in student

Snapshots and catalog items are frozen so they can be shared between the
refresh thread and request threads without locks.
"""

from .item import Item, ItemGroup, StockStatus, group_items, is_all_education_levels
from .order import (
    Order,
    OrderLine,
    OrderStatus,
    CartLine,
    cart_from_session,
    cart_to_session,
    parse_timestamp,
)
from .limits import LimitSnapshot
from .student import Student

__all__ = [
    # Catalog models
    "Item",
    "ItemGroup",
    "StockStatus",
    "group_items",
    "is_all_education_levels",
    # Order models
    "Order",
    "OrderLine",
    "OrderStatus",
    "CartLine",
    "cart_from_session",
    "cart_to_session",
    "parse_timestamp",
    # Limits
    "LimitSnapshot",
    # Session
    "Student",
]
