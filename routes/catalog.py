"""
Catalog routes.

Handles:
- GET /api/catalog           - Grouped products with an eligibility decision each
- GET /api/catalog/<item_id> - One product with a decision per size

Every button state the front end shows (Add to Cart, Order Now,
Pre-order, disabled reason) comes from modules.eligibility.evaluate.
"""

from flask import Blueprint, request

from core.exceptions import UpstreamResponseError, UpstreamUnavailableError
from modules.eligibility import evaluate, filter_catalog
from routes.common import (
    MAX_FIELD_LENGTH,
    get_cart,
    get_service,
    json_error,
    optional_student,
    sanitize_text,
    snapshot_for,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

catalog_bp = Blueprint("catalog", __name__)


def _limits_meta(snapshot):
    return {
        "confirmed": snapshot.confirmed,
        "isStale": snapshot.is_stale,
        "blockedDueToVoid": snapshot.blocked_due_to_void,
        "slotsLeft": snapshot.slots_left,
    }


@catalog_bp.route("/api/catalog", methods=["GET"])
def catalog():
    """
    Product list for the signed-in student (or anonymous visitor).

    Query:
        level=mine - only the student's education level and all-level items
        refresh=1  - bypass the catalog cache
    """
    student = optional_student()
    match_level = request.args.get("level") == "mine"
    force_refresh = request.args.get("refresh") == "1"

    try:
        groups = get_service("CATALOG_SERVICE").get_groups(student, force_refresh=force_refresh)
    except (UpstreamUnavailableError, UpstreamResponseError) as e:
        logger.warning(f"Catalog unavailable: {e}")
        return json_error(e.message, e.status_code, data=[])

    snapshot = snapshot_for(student)
    cart = get_cart()

    data = []
    for group in filter_catalog(groups, student, match_education_level=match_level):
        entry = group.to_dict()
        entry["eligibility"] = evaluate(group, snapshot, cart, student).to_dict()
        data.append(entry)

    return {"success": True, "data": data, "limits": _limits_meta(snapshot)}


@catalog_bp.route("/api/catalog/<item_id>", methods=["GET"])
def item_detail(item_id):
    """
    Product detail with one decision per size.

    Query:
        size - optional picked size; its decision is returned as ``selected``
    """
    student = optional_student()
    size = sanitize_text(request.args.get("size", ""), max_length=MAX_FIELD_LENGTH)

    catalog_service = get_service("CATALOG_SERVICE")
    try:
        groups = catalog_service.get_groups(student)
    except (UpstreamUnavailableError, UpstreamResponseError) as e:
        logger.warning(f"Catalog unavailable: {e}")
        return json_error(e.message, e.status_code, data=None)

    group = catalog_service.find_group(groups, item_id)
    if group is None:
        return json_error("Item not found", 404)

    snapshot = snapshot_for(student)
    cart = get_cart()

    sizes = []
    for variation in group.variations:
        decision = evaluate(group, snapshot, cart, student, selected_size_stock=variation.stock)
        sizes.append({
            "id": variation.id,
            "size": variation.size,
            "stock": variation.stock,
            "status": variation.status.value,
            "eligibility": decision.to_dict(),
        })

    data = group.to_dict()
    data["eligibility"] = evaluate(group, snapshot, cart, student).to_dict()
    data["sizes"] = sizes

    selected = group.variation_for_size(size)
    if selected is not None:
        data["selected"] = evaluate(
            group, snapshot, cart, student, selected_size_stock=selected.stock
        ).to_dict()

    return {"success": True, "data": data, "limits": _limits_meta(snapshot)}
