"""
Order eligibility and quantity-limit evaluation.

One pure function decides, for one catalog item, how many more units a
student may put in the cart or order right now and why ordering is
blocked. Product listing, product detail, cart stepper and order-history
"Order Again" all call it, so the rule cannot drift between screens.

Priority (the first terminal block wins for the "blocked" decision):
    1. Void block           - an auto-voided order blocks every item
    2. Permission policy    - old students need an explicit permission
    3. Max quantity reached - cap of 1 counts claims; caps > 1 count ordered + claimed
    4. Headroom             - cap - cart - ordered - claimed (stock never lowers it)
    5. Slot limit           - a new distinct item needs a free slot
    6. Gender               - non-Unisex items only for the matching gender
    7. Limit unset          - a signed-in student with no item limit cannot order

Out-of-stock never blocks by itself; it turns the order into a pre-order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, FrozenSet, Iterable, List, Optional, Set

from models.item import UNISEX, is_all_education_levels
from models.limits import LimitSnapshot
from models.order import CartLine
from models.student import Student
from modules.item_keys import resolve_key, default_max_for_key


class PermissionPolicy(Enum):
    """
    How a missing permission key is read.

    ALLOWLIST: missing key = not permitted (old students; an administrator
               must enable each item), except items for all education levels.
    DEFAULT:   missing key = per-item default cap (new students).
    """

    ALLOWLIST = "allowlist"
    DEFAULT = "default"

    @classmethod
    def for_student(cls, student: Optional[Student]) -> "PermissionPolicy":
        if student is not None and student.is_old_student:
            return cls.ALLOWLIST
        return cls.DEFAULT


class DisabledReason(Enum):
    """Why ordering an item is blocked."""

    VOIDED_BLOCK = "voided-block"
    NOT_PERMITTED_FOR_STUDENT_TYPE = "not-permitted-for-student-type"
    MAX_QUANTITY_REACHED = "max-quantity-reached"
    SLOT_LIMIT_FULL = "slot-limit-full"
    GENDER_MISMATCH = "gender-mismatch"
    ORDER_LIMIT_UNSET = "order-limit-unset"


class OrderIntent(Enum):
    """Which request an enabled order button sends."""

    ORDER = "order"
    PRE_ORDER = "pre-order"


@dataclass(frozen=True)
class EligibilityDecision:
    """Result of evaluating one item for one student."""

    key: str
    """Canonical limit key of the item."""

    effective_max: int
    """Units the student may still add (>= 0)."""

    max_quantity: int
    """Resolved cap before usage is subtracted."""

    disabled_reasons: FrozenSet[DisabledReason] = field(default_factory=frozenset)
    order_intent: OrderIntent = OrderIntent.ORDER
    in_cart: int = 0

    @property
    def enabled(self) -> bool:
        return self.effective_max > 0 and not self.disabled_reasons

    @property
    def is_pre_order(self) -> bool:
        return self.order_intent is OrderIntent.PRE_ORDER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "enabled": self.enabled,
            "effectiveMax": self.effective_max,
            "maxQuantity": self.max_quantity,
            "inCart": self.in_cart,
            "orderIntent": self.order_intent.value,
            "disabledReasons": sorted(r.value for r in self.disabled_reasons),
        }


def cart_keys(cart: Iterable[CartLine]) -> Set[str]:
    """Distinct limit keys present in the cart (the slots it occupies)."""
    return {key for key in (resolve_key(line.name) for line in cart) if key}


def quantity_in_cart(cart: Iterable[CartLine], key: str) -> int:
    return sum(max(0, line.quantity) for line in cart if resolve_key(line.name) == key)


def _gender_matches(item_gender: Optional[str], student: Optional[Student]) -> bool:
    target = (item_gender or UNISEX).strip()
    if not target or target.lower() == UNISEX.lower():
        return True
    if student is None or not student.gender:
        return True
    return target.lower() == student.gender.strip().lower()


def evaluate(
    item,
    snapshot: LimitSnapshot,
    cart: Iterable[CartLine] = (),
    student: Optional[Student] = None,
    selected_size_stock: Optional[int] = None,
) -> EligibilityDecision:
    """
    Evaluate one item (an Item row or an ItemGroup) for one student.

    Args:
        item: Object with ``name``, ``education_level``, ``for_gender``,
              ``stock`` and ``requires_size``
        snapshot: Current limit snapshot (confirmed or fail-closed placeholder)
        cart: Current cart lines
        student: Signed-in student, None for anonymous browsing
        selected_size_stock: Stock of the picked size, when a size is picked

    Returns:
        EligibilityDecision
    """
    cart = list(cart)
    key = resolve_key(item.name)
    in_cart = quantity_in_cart(cart, key)
    stock = selected_size_stock if selected_size_stock is not None else item.stock
    intent = OrderIntent.PRE_ORDER if stock <= 0 else OrderIntent.ORDER

    if snapshot.blocked_due_to_void:
        return EligibilityDecision(
            key=key,
            effective_max=0,
            max_quantity=0,
            disabled_reasons=frozenset({DisabledReason.VOIDED_BLOCK}),
            order_intent=intent,
            in_cart=in_cart,
        )

    reasons: Set[DisabledReason] = set()

    explicit_max = snapshot.max_for(key)
    policy = PermissionPolicy.for_student(student)
    if (
        policy is PermissionPolicy.ALLOWLIST
        and explicit_max is None
        and not is_all_education_levels(item.education_level)
    ):
        max_quantity = 0
        reasons.add(DisabledReason.NOT_PERMITTED_FOR_STUDENT_TYPE)
    elif explicit_max is not None:
        max_quantity = max(0, explicit_max)
    else:
        max_quantity = default_max_for_key(key)

    ordered = snapshot.ordered_for(key)
    claimed = snapshot.claimed_for(key)
    total_used = ordered + claimed

    # A cap of 1 is "one ever", enforced at claim time; larger caps are a
    # running total across ordered and claimed units.
    cap_reached = max_quantity > 0 and (
        (max_quantity == 1 and claimed >= max_quantity)
        or (max_quantity > 1 and total_used >= max_quantity)
    )

    if cap_reached:
        effective_max = 0
        reasons.add(DisabledReason.MAX_QUANTITY_REACHED)
    else:
        effective_max = max(0, max_quantity - in_cart - ordered - claimed)
        if effective_max == 0 and not reasons:
            reasons.add(DisabledReason.MAX_QUANTITY_REACHED)
        # Stock never lowers the cap: with a cap of 1 headroom is at most 1,
        # a stocked size covers it and an empty size is a pre-order. Larger
        # caps are bound by the cap alone.

    if snapshot.has_item_limit:
        occupied = cart_keys(cart)
        if key not in occupied and len(occupied) >= snapshot.slots_left:
            effective_max = 0
            reasons.add(DisabledReason.SLOT_LIMIT_FULL)

    if not _gender_matches(item.for_gender, student):
        effective_max = 0
        reasons.add(DisabledReason.GENDER_MISMATCH)

    if student is not None and not snapshot.has_item_limit:
        effective_max = 0
        reasons.add(DisabledReason.ORDER_LIMIT_UNSET)

    return EligibilityDecision(
        key=key,
        effective_max=effective_max,
        max_quantity=max_quantity,
        disabled_reasons=frozenset(reasons),
        order_intent=intent,
        in_cart=in_cart,
    )


def clamp_cart_quantity(
    item,
    line: CartLine,
    requested: int,
    snapshot: LimitSnapshot,
    cart: Iterable[CartLine],
    student: Optional[Student] = None,
) -> int:
    """
    Clamp a cart stepper change for one line.

    The line may hold whatever room the other lines of the same key leave.
    A result below 1 means the line should be removed.

    Args:
        item: Catalog item the line refers to
        line: The cart line being changed (matched by inventory id and size)
        requested: Quantity the student asked for
        snapshot: Current limit snapshot
        cart: Full cart, including ``line``
        student: Signed-in student

    Returns:
        Quantity to store (0 = remove the line)
    """
    if requested < 1:
        return 0

    # Keep the line in place with zero quantity so its key still occupies
    # its slot while the room is computed.
    others = [
        CartLine(l.inventory_id, l.name, l.size, 0)
        if (l.inventory_id == line.inventory_id and l.size == line.size)
        else l
        for l in cart
    ]
    room = evaluate(item, snapshot, others, student).effective_max
    return max(0, min(requested, room))


def can_order_again(
    item,
    snapshot: LimitSnapshot,
    cart: Iterable[CartLine] = (),
    student: Optional[Student] = None,
) -> bool:
    """
    Whether "Order Again" is enabled for a line in order history.

    Args:
        item: Catalog group the history line resolves to, None when the
              item is no longer in the catalog
        snapshot: Current limit snapshot
        cart: Current cart lines
        student: Signed-in student

    Returns:
        True when the same decision as the product page would enable ordering
    """
    if item is None:
        return False
    return evaluate(item, snapshot, cart, student).enabled


def filter_catalog(
    items: Iterable,
    student: Optional[Student],
    match_education_level: bool = False,
) -> List:
    """
    Hide items a student can never order.

    Items for the other gender are hidden. With ``match_education_level``,
    only the student's level and all-level items are kept.
    """
    visible = []
    for item in items:
        if student is not None and student.gender and not _gender_matches(item.for_gender, student):
            continue
        if (
            match_education_level
            and student is not None
            and student.education_level
            and not is_all_education_levels(item.education_level)
            and item.education_level.strip().lower() != student.education_level.strip().lower()
        ):
            continue
        visible.append(item)
    return visible
