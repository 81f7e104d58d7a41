"""Order tab classification (pre-orders / orders / claimed) and sorting."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from models.order import Order, ACTIVE_STATUSES, CLAIMED_STATUSES


class OrderCategory(Enum):
    PRE_ORDER = "preOrders"
    ACTIVE = "orders"
    CLAIMED = "claimed"
    OTHER = "other"


class SortOrder(Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    ALL = "all"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortOrder":
        try:
            return cls((value or cls.NEWEST.value).lower())
        except ValueError:
            return cls.NEWEST


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def classify(order: Order) -> OrderCategory:
    """
    Bucket an order for the student's order tabs.

    Pre-orders always land in PRE_ORDER whatever their status.
    """
    if order.is_pre_order:
        return OrderCategory.PRE_ORDER
    if order.status in ACTIVE_STATUSES:
        return OrderCategory.ACTIVE
    if order.status in CLAIMED_STATUSES:
        return OrderCategory.CLAIMED
    return OrderCategory.OTHER


def sort_orders(orders: Iterable[Order], sort_order: SortOrder = SortOrder.NEWEST) -> List[Order]:
    """
    Sort by resolved order date. Ties keep fetch order (sorted() is stable).

    Orders without any date sort as the epoch.
    """
    orders = list(orders)
    reverse = sort_order is not SortOrder.OLDEST
    return sorted(orders, key=lambda o: o.order_date or _EPOCH, reverse=reverse)


def orders_in_category(
    orders: Iterable[Order],
    category: Optional[OrderCategory],
    sort_order: SortOrder = SortOrder.NEWEST,
) -> List[Order]:
    """Orders of one category (all orders when ``category`` is None), sorted."""
    selected = [o for o in orders if category is None or classify(o) is category]
    return sort_orders(selected, sort_order)


def count_by_category(orders: Iterable[Order]) -> Dict[str, int]:
    """Badge counts per tab."""
    counts = {category.value: 0 for category in OrderCategory}
    for order in orders:
        counts[classify(order).value] += 1
    return counts
