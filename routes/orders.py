"""
Order routes.

Handles:
- GET /api/orders                  - Order tabs (?category=&sort=)
- POST /api/orders/checkout        - Place the cart as one order
- POST /api/orders/<id>/cancel     - Cancel an active order
- POST /api/orders/<id>/convert    - Convert a pre-order
- GET /api/orders/<id>/receipt     - QR receipt payload and validity

Orders are always addressed by their UUID, never by order number.
"""

from flask import Blueprint, request

from core.exceptions import UpstreamResponseError, UpstreamUnavailableError
from modules.eligibility import can_order_again
from modules.order_categories import (
    OrderCategory,
    SortOrder,
    classify,
    count_by_category,
    orders_in_category,
)
from routes.common import (
    MAX_NOTES_LENGTH,
    current_student,
    get_cart,
    get_service,
    json_error,
    sanitize_text,
    save_cart,
    snapshot_for,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

orders_bp = Blueprint("orders", __name__)


def _parse_category(value):
    if not value or value == "all":
        return None
    try:
        return OrderCategory(value)
    except ValueError:
        return None


@orders_bp.route("/api/orders", methods=["GET"])
def list_orders():
    """
    Orders of the signed-in student for one tab.

    Each line carries ``canOrderAgain`` from the current limit snapshot.
    """
    student = current_student()
    order_service = get_service("ORDER_SERVICE")
    category = _parse_category(request.args.get("category"))
    sort_order = SortOrder.parse(request.args.get("sort"))

    try:
        orders = order_service.list_orders(student)
    except (UpstreamUnavailableError, UpstreamResponseError) as e:
        logger.warning(f"Orders unavailable for {student.id}: {e}")
        return json_error(e.message, e.status_code, data=[])

    catalog_service = get_service("CATALOG_SERVICE")
    try:
        groups = catalog_service.get_groups(student)
    except (UpstreamUnavailableError, UpstreamResponseError) as e:
        # Without the catalog no line can be re-ordered
        logger.warning(f"Catalog unavailable for order history of {student.id}: {e}")
        groups = []

    snapshot = snapshot_for(student)
    cart = get_cart()
    data = []
    for order in orders_in_category(orders, category, sort_order):
        entry = order.to_dict()
        entry["category"] = classify(order).value
        for line, line_dict in zip(order.items, entry["items"]):
            group = catalog_service.find_group_by_name(groups, line.name, order.education_level)
            line_dict["canOrderAgain"] = can_order_again(group, snapshot, cart, student)
        data.append(entry)

    return {
        "success": True,
        "data": data,
        "counts": count_by_category(orders),
        "revision": order_service.revision(student.id),
    }


@orders_bp.route("/api/orders/checkout", methods=["POST"])
def checkout():
    """Place every cart line as one order and empty the cart."""
    student = current_student()
    data = request.get_json(silent=True) or {}
    notes = sanitize_text(data.get("notes", ""), max_length=MAX_NOTES_LENGTH)

    order = get_service("ORDER_SERVICE").checkout(student, get_cart(), notes)
    save_cart([])

    logger.info(f"Checkout complete for {student.id}: {order.order_number}")
    return {"success": True, "data": order.to_dict()}, 201


@orders_bp.route("/api/orders/<order_id>/cancel", methods=["POST"])
def cancel_order(order_id):
    student = current_student()
    order = get_service("ORDER_SERVICE").cancel(student, order_id)
    return {"success": True, "data": order.to_dict()}


@orders_bp.route("/api/orders/<order_id>/convert", methods=["POST"])
def convert_order(order_id):
    student = current_student()
    order = get_service("ORDER_SERVICE").convert_pre_order(student, order_id)
    return {"success": True, "data": order.to_dict()}


@orders_bp.route("/api/orders/<order_id>/receipt", methods=["GET"])
def receipt(order_id):
    """QR payload plus remaining weekdays of validity."""
    student = current_student()
    data = get_service("ORDER_SERVICE").receipt(student, order_id)
    return {"success": True, "data": data}
