"""
Cart routes.

Handles:
- GET /api/cart                    - Current cart lines
- POST /api/cart                   - Add a line (checked by the evaluator)
- PATCH /api/cart/<inventory_id>   - Stepper change (clamped)
- DELETE /api/cart/<inventory_id>  - Remove a line

Cart lines count against the limits exactly like placed orders, so an
add is only accepted when the evaluator leaves room for it.
"""

from flask import Blueprint, request

from core.exceptions import OrderError, OrderNotEligibleError
from models.item import NO_SIZE
from models.order import CartLine
from modules.eligibility import clamp_cart_quantity, evaluate
from routes.common import (
    MAX_FIELD_LENGTH,
    current_student,
    get_cart,
    get_service,
    json_error,
    sanitize_text,
    save_cart,
    snapshot_for,
)
from logging_config import get_student_logger


cart_bp = Blueprint("cart", __name__)


def _parse_quantity(value, default: int = 1) -> int:
    try:
        return int(value if value is not None else default)
    except (TypeError, ValueError):
        raise OrderError("Quantity must be a whole number")


def _cart_body(lines):
    return {
        "success": True,
        "data": [line.to_dict() for line in lines],
        "totalQuantity": sum(line.quantity for line in lines),
    }


def _find_group(student, inventory_id):
    catalog_service = get_service("CATALOG_SERVICE")
    group = catalog_service.find_group(catalog_service.get_groups(student), inventory_id)
    if group is None:
        raise OrderError("This item is no longer available")
    return group


@cart_bp.route("/api/cart", methods=["GET"])
def view_cart():
    current_student()
    return _cart_body(get_cart())


@cart_bp.route("/api/cart", methods=["POST"])
def add_to_cart():
    """
    Add ``quantity`` of one size to the cart.

    Body: {inventoryId, size, quantity}
    """
    student = current_student()
    data = request.get_json(silent=True) or {}

    inventory_id = sanitize_text(data.get("inventoryId", ""), max_length=MAX_FIELD_LENGTH)
    size = sanitize_text(data.get("size", ""), max_length=MAX_FIELD_LENGTH)
    quantity = _parse_quantity(data.get("quantity"))
    if not inventory_id:
        return json_error("inventoryId is required", 400)
    if quantity < 1:
        return json_error("Quantity must be at least 1", 400)

    group = _find_group(student, inventory_id)
    variation = group.variation_for_size(size) if size else group.variation_by_id(inventory_id)
    if group.requires_size and (not size or variation is None):
        return json_error("Please select a size", 400)
    if variation is None:
        variation = group.variation_by_id(inventory_id)

    snapshot = snapshot_for(student)
    cart = get_cart()
    decision = evaluate(
        group,
        snapshot,
        cart,
        student,
        selected_size_stock=variation.stock if size else None,
    )
    if quantity > decision.effective_max:
        raise OrderNotEligibleError(
            group.name,
            quantity,
            decision.effective_max,
            [r.value for r in decision.disabled_reasons],
        )

    line_size = size or NO_SIZE
    for line in cart:
        if line.inventory_id == variation.id and line.size == line_size:
            line.quantity += quantity
            break
    else:
        cart.append(CartLine(variation.id, group.name, line_size, quantity))

    save_cart(cart)
    get_student_logger(student.id).debug(f"Cart add: {group.name} ({line_size}) x{quantity}")

    body = _cart_body(get_cart())
    body["orderIntent"] = decision.order_intent.value
    return body, 201


@cart_bp.route("/api/cart/<inventory_id>", methods=["PATCH"])
def update_cart_line(inventory_id):
    """
    Stepper change for one line, clamped to what the limits allow.

    Body: {quantity, size}
    """
    student = current_student()
    data = request.get_json(silent=True) or {}
    requested = _parse_quantity(data.get("quantity"), default=0)
    size = sanitize_text(data.get("size", ""), max_length=MAX_FIELD_LENGTH) or None

    cart = get_cart()
    line = next(
        (l for l in cart if l.inventory_id == inventory_id and (size is None or l.size == size)),
        None,
    )
    if line is None:
        return json_error("Item is not in your cart", 404)

    group = _find_group(student, inventory_id)
    stored = clamp_cart_quantity(group, line, requested, snapshot_for(student), cart, student)

    if stored < 1:
        cart = [l for l in cart if l is not line]
    else:
        line.quantity = stored
    save_cart(cart)

    body = _cart_body(get_cart())
    body["quantity"] = stored
    body["clamped"] = stored != requested
    return body


@cart_bp.route("/api/cart/<inventory_id>", methods=["DELETE"])
def remove_cart_line(inventory_id):
    """Remove a line (every size of it unless ``?size=`` is given)."""
    current_student()
    size = sanitize_text(request.args.get("size", ""), max_length=MAX_FIELD_LENGTH) or None

    cart = [
        l for l in get_cart()
        if not (l.inventory_id == inventory_id and (size is None or l.size == size))
    ]
    save_cart(cart)
    return _cart_body(cart)
