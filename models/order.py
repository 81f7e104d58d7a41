"""
Order data models.

Orders are owned by the upstream API: the portal only reflects the status
it fetched or was pushed. Mutations always address an order by its UUID
``id``; ``order_number`` is for humans (receipts, claim desk).

Cart lines are local to the Flask session until checkout.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


PRE_ORDER = "pre-order"
REGULAR_ORDER = "regular"


class OrderStatus(Enum):
    """Order status as reported by the upstream API."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    PAYMENT_PENDING = "payment_pending"
    COMPLETED = "completed"
    CLAIMED = "claimed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.READY.value,
    OrderStatus.PAYMENT_PENDING.value,
})

CLAIMED_STATUSES = frozenset({
    OrderStatus.COMPLETED.value,
    OrderStatus.CLAIMED.value,
})

# First non-null of these is the order's date for sorting.
ORDER_DATE_FIELDS = (
    "created_at",
    "createdAt",
    "orderDate",
    "order_date",
    "updated_at",
    "updatedAt",
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an upstream timestamp (ISO 8601, optional trailing 'Z').

    Naive values are taken as UTC. Returns None for empty or unparseable
    input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class OrderLine:
    """One line of a placed order."""

    name: str
    quantity: int = 1
    size: str = "N/A"
    price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OrderLine":
        try:
            quantity = int(data.get("quantity") or 1)
        except (TypeError, ValueError):
            quantity = 1
        try:
            price = float(data.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0
        return cls(
            name=data.get("name") or "Unknown Item",
            quantity=quantity,
            size=data.get("size") or "N/A",
            price=price,
        )


@dataclass(frozen=True)
class Order:
    """
    An order as last seen from the upstream API.

    ``raw`` keeps the original payload so timestamp fields can be resolved
    in the same precedence the UI uses.
    """

    id: str
    """Opaque UUID, the only identity used for mutations."""

    order_number: str = ""
    """Human-facing number (e.g. ORD-20261018-01234)."""

    order_type: str = REGULAR_ORDER
    status: str = OrderStatus.PENDING.value
    items: Tuple[OrderLine, ...] = field(default_factory=tuple)

    student_id: str = ""
    student_name: str = ""
    education_level: str = "General"
    total_amount: float = 0.0

    qr_issued_at: Optional[str] = None
    """When QR validity started (defaults to the order creation time)."""

    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_pre_order(self) -> bool:
        return self.order_type == PRE_ORDER

    @property
    def order_date(self) -> Optional[datetime]:
        """First resolvable timestamp among the known date fields."""
        for key in ORDER_DATE_FIELDS:
            parsed = parse_timestamp(self.raw.get(key))
            if parsed is not None:
                return parsed
        return None

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    def to_dict(self) -> Dict[str, Any]:
        order_date = self.order_date
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "orderType": self.order_type,
            "status": self.status,
            "items": [line.to_dict() for line in self.items],
            "studentId": self.student_id,
            "studentName": self.student_name,
            "educationLevel": self.education_level,
            "totalAmount": self.total_amount,
            "qrIssuedAt": self.qr_issued_at,
            "orderDate": order_date.isoformat() if order_date else None,
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Order":
        """
        Create an Order from an upstream payload.

        Both snake_case and camelCase keys are accepted because event
        payloads and REST bodies disagree.
        """
        try:
            total_amount = float(data.get("total_amount") or data.get("totalAmount") or 0)
        except (TypeError, ValueError):
            total_amount = 0.0

        created = data.get("created_at") or data.get("createdAt")
        return cls(
            id=str(data.get("id") or ""),
            order_number=data.get("order_number") or data.get("orderNumber") or "",
            order_type=data.get("order_type") or data.get("orderType") or REGULAR_ORDER,
            status=(data.get("status") or OrderStatus.PENDING.value).lower(),
            items=tuple(OrderLine.from_api(i) for i in (data.get("items") or [])),
            student_id=str(data.get("student_id") or data.get("studentId") or ""),
            student_name=data.get("student_name") or data.get("studentName") or "",
            education_level=(
                data.get("education_level") or data.get("educationLevel") or "General"
            ),
            total_amount=total_amount,
            qr_issued_at=data.get("qr_issued_at") or data.get("qrIssuedAt") or created,
            raw=dict(data),
        )


@dataclass
class CartLine:
    """
    A not-yet-ordered cart line (session only).

    Counts against a student's limits exactly like ``alreadyOrdered``.
    """

    inventory_id: str
    name: str
    size: str = "N/A"
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for session storage."""
        return {
            "inventoryId": self.inventory_id,
            "name": self.name,
            "size": self.size,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLine":
        """Create from dictionary (e.g., from session)."""
        return cls(
            inventory_id=str(data.get("inventoryId") or data.get("inventory_id") or ""),
            name=data.get("name", ""),
            size=data.get("size") or "N/A",
            quantity=int(data.get("quantity") or 0),
        )


def cart_from_session(data: Optional[List[Dict[str, Any]]]) -> List[CartLine]:
    """Rebuild cart lines from ``session['cart']``."""
    return [CartLine.from_dict(line) for line in (data or [])]


def cart_to_session(lines: List[CartLine]) -> List[Dict[str, Any]]:
    """Serialize cart lines for ``session['cart']``, dropping empty lines."""
    return [line.to_dict() for line in lines if line.quantity > 0]
