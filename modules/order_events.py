"""
Realtime event normalization.

Socket.IO payloads populate order identity inconsistently: some carry
``orderId``, some ``order.id``, some only an order number with or without
its "ORD-"/"#" prefix. Every event is normalized here, once, into an
OrderEvent; the rest of the portal never reads raw payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from models.order import Order

ITEM_UPDATED = "item:updated"
ORDER_CREATED = "order:created"
ORDER_UPDATED = "order:updated"
ORDER_CLAIMED = "order:claimed"
PERMISSIONS_UPDATED = "student:permissions:updated"

SUBSCRIBED_EVENTS = (
    ITEM_UPDATED,
    ORDER_CREATED,
    ORDER_UPDATED,
    ORDER_CLAIMED,
    PERMISSIONS_UPDATED,
)

# Statuses that change claimed/ordered counts when pushed.
_LIMIT_AFFECTING_STATUSES = frozenset({"claimed", "completed", "cancelled"})

_ORDER_NUMBER_PREFIXES = ("#", "ord-", "ord")


def normalize_order_number(value: Optional[str]) -> str:
    """
    Canonical form of an order number for matching.

    "#ORD-20261018-01234", "ord-20261018-01234" and "20261018-01234" all
    normalize to "20261018-01234".
    """
    text = (value or "").strip().lower()
    for prefix in _ORDER_NUMBER_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
    return text.strip("-# ")


def order_numbers_match(left: Optional[str], right: Optional[str]) -> bool:
    """Prefix- and case-insensitive match, tolerant of one side being a substring."""
    a = normalize_order_number(left)
    b = normalize_order_number(right)
    if not a or not b:
        return False
    return a == b or a in b or b in a


@dataclass(frozen=True)
class OrderEvent:
    """One realtime event with a single canonical identity."""

    name: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    status: Optional[str] = None
    user_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_order_event(self) -> bool:
        return self.name.startswith("order:")

    @property
    def affects_limits(self) -> bool:
        """Whether the student's limit snapshot must be re-fetched."""
        if self.name in (ORDER_CLAIMED, ORDER_CREATED, PERMISSIONS_UPDATED):
            return True
        return self.name == ORDER_UPDATED and (self.status or "") in _LIMIT_AFFECTING_STATUSES

    def concerns_student(self, student_id: Optional[str]) -> bool:
        """
        Whether this event may concern a student.

        Events without a user id are broadcast and concern everyone.
        """
        if not self.user_id or not student_id:
            return True
        return str(self.user_id) == str(student_id)


def normalize_event(name: str, data: Optional[Dict[str, Any]]) -> OrderEvent:
    """
    Build an OrderEvent from a raw Socket.IO payload.

    Args:
        name: Event name (e.g. "order:updated")
        data: Raw payload (may be None)
    """
    data = data if isinstance(data, dict) else {}
    order = data.get("order") if isinstance(data.get("order"), dict) else {}

    order_id = data.get("orderId") or data.get("order_id") or order.get("id")
    order_number = (
        data.get("orderNumber")
        or data.get("order_number")
        or order.get("order_number")
        or order.get("orderNumber")
    )
    status = data.get("status") or order.get("status")
    user_id = (
        data.get("userId")
        or data.get("studentId")
        or data.get("student_id")
        or order.get("student_id")
        or order.get("studentId")
    )

    return OrderEvent(
        name=name,
        order_id=str(order_id) if order_id else None,
        order_number=order_number or None,
        status=status.lower() if isinstance(status, str) else None,
        user_id=str(user_id) if user_id else None,
        payload=dict(data),
    )


def matches_order(event: OrderEvent, order: Order) -> bool:
    """Whether an event refers to an order, by UUID or by order number."""
    if event.order_id and order.id and event.order_id == order.id:
        return True
    return order_numbers_match(event.order_number, order.order_number)
