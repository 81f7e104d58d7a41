"""
Order receipt QR payload.

The QR image embeds a JSON string scanned by the claim desk. The field set
is a wire contract and must not change:

    {type, orderNumber, studentId, studentName, items[{name, quantity, size}],
     totalItems, totalAmount, orderDate, educationLevel, status,
     qrIssuedAt, qrValidDays}

Rendering the image is the front end's job; this module only builds,
validates and parses the payload.
"""

from __future__ import annotations

import json
import random
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

from core.exceptions import ReceiptValidationError
from models.order import Order, parse_timestamp
from models.student import Student
from modules.receipt_validity import QR_VALID_DAYS

RECEIPT_TYPE = "order_receipt"


def _iso(value: Any) -> Optional[str]:
    parsed = parse_timestamp(value)
    return parsed.isoformat() if parsed else None


def build_receipt_payload(
    order: Order,
    student: Optional[Student] = None,
    valid_days: int = QR_VALID_DAYS,
) -> str:
    """
    Build the JSON string embedded in an order's receipt QR.

    Args:
        order: Order to encode
        student: Signed-in student (fills name/id when the order lacks them)
        valid_days: Validity window in weekdays

    Returns:
        JSON string

    Raises:
        ReceiptValidationError: Missing order number or no items
    """
    if not order.order_number:
        raise ReceiptValidationError("Order number is required for QR code generation")

    items = [
        {
            "name": line.name or "Unknown Item",
            "quantity": line.quantity or 1,
            "size": line.size or "N/A",
        }
        for line in order.items
    ]
    if not items:
        raise ReceiptValidationError(
            "Order must contain at least one item for QR code generation",
            {"order_number": order.order_number},
        )

    now = datetime.now(timezone.utc).isoformat()
    student_id = order.student_id or (student.id if student else "") or "unknown"
    student_name = order.student_name or (student.name if student else "") or "Unknown Student"
    order_date = order.order_date

    payload = {
        "type": RECEIPT_TYPE,
        "orderNumber": order.order_number,
        "studentId": student_id,
        "studentName": student_name,
        "items": items,
        "totalItems": order.raw.get("quantity") or len(items),
        "totalAmount": order.total_amount,
        "orderDate": order_date.isoformat() if order_date else now,
        "educationLevel": order.education_level or "General",
        "status": order.status or "pending",
        # Validity counts from order creation, not from when the QR is shown
        "qrIssuedAt": _iso(order.qr_issued_at) or now,
        "qrValidDays": valid_days,
    }
    return json.dumps(payload)


def parse_receipt_payload(qr_string: str) -> Optional[Dict[str, Any]]:
    """
    Parse a scanned QR string.

    Returns:
        Payload dictionary, or None when the string is not a receipt
    """
    try:
        data = json.loads(qr_string)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    if data.get("type") != RECEIPT_TYPE or not data.get("orderNumber"):
        return None
    return data


def generate_order_number(now: Optional[datetime] = None) -> str:
    """Generate an order number like ORD-20261018-04217."""
    now = now or datetime.now()
    return f"ORD-{now:%Y%m%d}-{random.randint(0, 99999):05d}"


def validate_order_data(order: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Check an order payload before it is sent upstream.

    Returns:
        (valid, errors)
    """
    errors = []
    if not (order.get("orderNumber") or order.get("order_number")):
        errors.append("Order number is required")
    if not (order.get("studentName") or order.get("student_name")):
        errors.append("Student name is required")
    if not order.get("items"):
        errors.append("Order must contain at least one item")
    return len(errors) == 0, errors
