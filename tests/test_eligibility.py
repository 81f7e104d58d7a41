"""
Unit tests for the order eligibility evaluator.

Every screen (catalog, detail, cart stepper, order history) goes through
these functions, so the numbers here are the numbers students see.
"""

import pytest

from models.item import Item, ItemGroup
from models.limits import LimitSnapshot
from models.order import CartLine
from models.student import Student
from modules.eligibility import (
    DisabledReason,
    OrderIntent,
    PermissionPolicy,
    can_order_again,
    cart_keys,
    clamp_cart_quantity,
    evaluate,
    filter_catalog,
    quantity_in_cart,
)


# Fixtures

@pytest.fixture
def new_student():
    """A new student (missing permission keys fall back to defaults)."""
    return Student(
        id="s-1001",
        name="Ana Cruz",
        student_type="new",
        gender="Female",
        education_level="College",
    )


@pytest.fixture
def old_student():
    """An old student (only explicitly permitted items)."""
    return Student(
        id="s-2002",
        name="Ben Reyes",
        student_type="old",
        gender="Male",
        education_level="College",
    )


def make_item(name, stock=10, size="N/A", gender="Unisex", level="College", item_id=None):
    return Item(
        id=item_id or f"inv-{name.lower().replace(' ', '-')}-{size.lower()}",
        name=name,
        education_level=level,
        stock=stock,
        size=size,
        for_gender=gender,
    )


def make_snapshot(**kwargs):
    kwargs.setdefault("total_item_limit", 5)
    return LimitSnapshot(**kwargs)


# Tests

class TestPermissionPolicy:
    """Test policy selection per student type."""

    def test_old_student_is_allowlist(self, old_student):
        assert PermissionPolicy.for_student(old_student) is PermissionPolicy.ALLOWLIST

    def test_new_student_is_default(self, new_student):
        assert PermissionPolicy.for_student(new_student) is PermissionPolicy.DEFAULT

    def test_anonymous_is_default(self):
        assert PermissionPolicy.for_student(None) is PermissionPolicy.DEFAULT


class TestMaxQuantity:
    """Test cap resolution and usage accounting."""

    def test_single_unit_item_claimed_is_blocked(self, new_student):
        snapshot = make_snapshot(
            max_quantities={"polo jacket": 1},
            claimed_items={"polo jacket": 1},
        )
        decision = evaluate(make_item("Polo Jacket"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert decision.disabled_reasons == {DisabledReason.MAX_QUANTITY_REACHED}
        assert decision.enabled is False

    def test_single_unit_item_already_ordered_has_no_headroom(self, new_student):
        snapshot = make_snapshot(
            max_quantities={"polo jacket": 1},
            already_ordered={"polo jacket": 1},
        )
        decision = evaluate(make_item("Polo Jacket"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert DisabledReason.MAX_QUANTITY_REACHED in decision.disabled_reasons

    def test_multi_unit_cap_counts_ordered_and_claimed(self, new_student):
        snapshot = make_snapshot(
            max_quantities={"logo patch": 3},
            already_ordered={"logo patch": 1},
            claimed_items={"logo patch": 1},
        )
        decision = evaluate(make_item("Logo Patch"), snapshot, [], new_student)

        assert decision.effective_max == 1
        assert decision.max_quantity == 3
        assert decision.enabled is True

    def test_multi_unit_cap_fully_used(self, new_student):
        snapshot = make_snapshot(
            max_quantities={"logo patch": 3},
            already_ordered={"logo patch": 2},
            claimed_items={"logo patch": 1},
        )
        decision = evaluate(make_item("Logo Patch"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert DisabledReason.MAX_QUANTITY_REACHED in decision.disabled_reasons

    def test_default_cap_for_logo_patch(self, new_student):
        snapshot = make_snapshot(already_ordered={"logo patch": 2})
        decision = evaluate(make_item("Logo Patch"), snapshot, [], new_student)

        assert decision.max_quantity == 3
        assert decision.effective_max == 1

    def test_cart_quantity_reduces_headroom(self, new_student):
        cart = [CartLine("inv-1", "Logo Patch", "N/A", 2)]
        decision = evaluate(make_item("Logo Patch"), make_snapshot(), cart, new_student)

        assert decision.in_cart == 2
        assert decision.effective_max == 1

    def test_cart_lines_match_by_key(self, new_student):
        cart = [
            CartLine("inv-s", "Small Jogging Pants", "S", 1),
            CartLine("inv-m", "Jogging Pants (Elementary)", "M", 1),
        ]
        assert quantity_in_cart(cart, "jogging pants") == 2
        assert cart_keys(cart) == {"jogging pants"}

    def test_explicit_zero_blocks(self, new_student):
        snapshot = make_snapshot(max_quantities={"logo patch": 0})
        decision = evaluate(make_item("Logo Patch"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert decision.max_quantity == 0
        assert decision.enabled is False

    def test_explicit_permission_overrides_default(self, new_student):
        snapshot = make_snapshot(max_quantities={"jogging pants": 2})
        decision = evaluate(make_item("Jogging Pants"), snapshot, [], new_student)

        assert decision.effective_max == 2


class TestBlocks:
    """Test terminal blocks and their reasons."""

    def test_void_blocks_every_item(self, new_student):
        snapshot = make_snapshot(
            max_quantities={"logo patch": 3, "polo jacket": 1},
            blocked_due_to_void=True,
        )
        for name in ("Logo Patch", "Polo Jacket", "Varsity Jacket"):
            decision = evaluate(make_item(name), snapshot, [], new_student)
            assert decision.effective_max == 0
            assert decision.disabled_reasons == {DisabledReason.VOIDED_BLOCK}

    def test_gender_mismatch(self, new_student):
        item = make_item("Necktie (Boys)", gender="Male")
        decision = evaluate(item, make_snapshot(), [], new_student)

        assert decision.effective_max == 0
        assert DisabledReason.GENDER_MISMATCH in decision.disabled_reasons

    def test_gender_match_is_case_insensitive(self, new_student):
        item = make_item("Elem Blouse", gender="female")
        decision = evaluate(item, make_snapshot(), [], new_student)

        assert decision.enabled is True

    def test_slot_limit_full_for_new_key(self, new_student):
        snapshot = make_snapshot(total_item_limit=5, slots_used_from_placed_orders=5)
        decision = evaluate(make_item("Logo Patch"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert DisabledReason.SLOT_LIMIT_FULL in decision.disabled_reasons

    def test_key_already_in_cart_keeps_its_slot(self, new_student):
        snapshot = make_snapshot(total_item_limit=5, slots_used_from_placed_orders=4)
        cart = [CartLine("inv-lace", "ID Lace", "N/A", 1)]

        same_key = evaluate(make_item("ID Lace"), snapshot, cart, new_student)
        new_key = evaluate(make_item("Logo Patch"), snapshot, cart, new_student)

        assert same_key.effective_max == 1
        assert DisabledReason.SLOT_LIMIT_FULL not in same_key.disabled_reasons
        assert new_key.effective_max == 0
        assert DisabledReason.SLOT_LIMIT_FULL in new_key.disabled_reasons

    def test_old_student_without_permission(self, old_student):
        decision = evaluate(make_item("Polo Jacket"), make_snapshot(), [], old_student)

        assert decision.effective_max == 0
        assert decision.disabled_reasons == {DisabledReason.NOT_PERMITTED_FOR_STUDENT_TYPE}

    def test_old_student_with_permission(self, old_student):
        snapshot = make_snapshot(max_quantities={"polo jacket": 1})
        decision = evaluate(make_item("Polo Jacket"), snapshot, [], old_student)

        assert decision.effective_max == 1
        assert decision.enabled is True

    def test_old_student_all_level_item_uses_default(self, old_student):
        item = make_item("ID Lace", level="General")
        decision = evaluate(item, make_snapshot(), [], old_student)

        assert decision.effective_max == 2
        assert not decision.disabled_reasons

    def test_limit_unset_blocks_signed_in_student(self, new_student):
        snapshot = LimitSnapshot(total_item_limit=None)
        decision = evaluate(make_item("Logo Patch"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert DisabledReason.ORDER_LIMIT_UNSET in decision.disabled_reasons

    def test_unconfirmed_snapshot_fails_closed(self, new_student):
        snapshot = LimitSnapshot.create_unconfirmed()
        decision = evaluate(make_item("Polo Jacket"), snapshot, [], new_student)

        assert decision.effective_max == 0
        assert decision.max_quantity == 1
        assert decision.enabled is False

    def test_anonymous_browsing_shows_defaults(self):
        snapshot = LimitSnapshot.create_unconfirmed()
        decision = evaluate(make_item("Logo Patch"), snapshot, [], None)

        assert decision.effective_max == 3
        assert decision.enabled is True


class TestOrderIntent:
    """Test order / pre-order intent."""

    def test_out_of_stock_is_pre_order_not_blocked(self, new_student):
        decision = evaluate(make_item("Polo Jacket", stock=0), make_snapshot(), [], new_student)

        assert decision.order_intent is OrderIntent.PRE_ORDER
        assert decision.is_pre_order is True
        assert decision.enabled is True

    def test_selected_size_stock_decides_intent(self, new_student):
        group = ItemGroup(
            name="Polo Jacket",
            education_level="College",
            variations=(
                make_item("Polo Jacket", stock=0, size="S"),
                make_item("Polo Jacket", stock=4, size="M"),
            ),
        )
        empty_size = evaluate(group, make_snapshot(), [], new_student, selected_size_stock=0)
        stocked_size = evaluate(group, make_snapshot(), [], new_student, selected_size_stock=4)

        assert empty_size.order_intent is OrderIntent.PRE_ORDER
        assert empty_size.effective_max == 1
        assert stocked_size.order_intent is OrderIntent.ORDER
        assert stocked_size.effective_max == 1

    def test_multi_unit_cap_is_not_clamped_by_stock(self, new_student):
        group = ItemGroup(
            name="Jogging Pants",
            education_level="College",
            variations=(
                make_item("Jogging Pants", stock=1, size="S"),
                make_item("Jogging Pants", stock=9, size="M"),
            ),
        )
        snapshot = make_snapshot(max_quantities={"jogging pants": 3})

        decision = evaluate(group, snapshot, [], new_student, selected_size_stock=1)

        assert decision.effective_max == 3
        assert decision.order_intent is OrderIntent.ORDER

    def test_single_unit_last_stocked_unit(self, new_student):
        group = ItemGroup(
            name="Polo Jacket",
            education_level="College",
            variations=(make_item("Polo Jacket", stock=1, size="S"),),
        )

        decision = evaluate(group, make_snapshot(), [], new_student, selected_size_stock=1)

        assert decision.effective_max == 1
        assert decision.enabled is True

    def test_to_dict(self, new_student):
        decision = evaluate(make_item("Logo Patch"), make_snapshot(), [], new_student)
        data = decision.to_dict()

        assert data["key"] == "logo patch"
        assert data["enabled"] is True
        assert data["effectiveMax"] == 3
        assert data["orderIntent"] == "order"
        assert data["disabledReasons"] == []


class TestClampCartQuantity:
    """Test the cart stepper clamp."""

    def test_clamps_to_room(self, new_student):
        line = CartLine("inv-patch", "Logo Patch", "N/A", 1)
        stored = clamp_cart_quantity(make_item("Logo Patch"), line, 5, make_snapshot(), [line], new_student)

        assert stored == 3

    def test_within_room_is_unchanged(self, new_student):
        line = CartLine("inv-patch", "Logo Patch", "N/A", 1)
        stored = clamp_cart_quantity(make_item("Logo Patch"), line, 2, make_snapshot(), [line], new_student)

        assert stored == 2

    def test_zero_means_remove(self, new_student):
        line = CartLine("inv-patch", "Logo Patch", "N/A", 1)
        stored = clamp_cart_quantity(make_item("Logo Patch"), line, 0, make_snapshot(), [line], new_student)

        assert stored == 0

    def test_line_keeps_its_slot_while_resized(self, new_student):
        snapshot = make_snapshot(total_item_limit=2)
        patch = CartLine("inv-patch", "Logo Patch", "N/A", 1)
        lace = CartLine("inv-lace", "ID Lace", "N/A", 1)

        stored = clamp_cart_quantity(make_item("ID Lace"), lace, 2, snapshot, [patch, lace], new_student)

        assert stored == 2

    def test_other_sizes_of_same_key_share_the_cap(self, new_student):
        snapshot = make_snapshot(max_quantities={"jogging pants": 2})
        small = CartLine("inv-s", "Jogging Pants", "S", 1)
        medium = CartLine("inv-m", "Jogging Pants", "M", 1)

        stored = clamp_cart_quantity(
            make_item("Jogging Pants", size="M"), medium, 2, snapshot, [small, medium], new_student
        )

        assert stored == 1


class TestCanOrderAgain:
    """Test the order history "Order Again" button."""

    def test_enabled_with_room_left(self, new_student):
        snapshot = make_snapshot(already_ordered={"logo patch": 1})
        assert can_order_again(make_item("Logo Patch"), snapshot, [], new_student) is True

    def test_multi_unit_partial_claim_still_enabled(self, new_student):
        snapshot = make_snapshot(max_quantities={"logo patch": 3}, claimed_items={"logo patch": 1})
        item = make_item("Logo Patch")

        assert evaluate(item, snapshot, [], new_student).effective_max == 2
        assert can_order_again(item, snapshot, [], new_student) is True

    def test_disabled_once_single_unit_claimed(self, new_student):
        snapshot = make_snapshot(claimed_items={"polo jacket": 1})
        assert can_order_again(make_item("Polo Jacket"), snapshot, [], new_student) is False

    def test_disabled_when_cap_used(self, new_student):
        snapshot = make_snapshot(already_ordered={"polo jacket": 1})
        assert can_order_again(make_item("Polo Jacket"), snapshot, [], new_student) is False

    def test_cart_counts_against_the_cap(self, new_student):
        snapshot = make_snapshot(already_ordered={"logo patch": 1})
        cart = [CartLine("inv-patch", "Logo Patch", "N/A", 2)]

        assert can_order_again(make_item("Logo Patch"), snapshot, cart, new_student) is False

    def test_disabled_for_old_student_without_permission(self, old_student):
        assert can_order_again(make_item("Logo Patch"), make_snapshot(), [], old_student) is False

    def test_disabled_when_voided(self, new_student):
        snapshot = make_snapshot(blocked_due_to_void=True)
        assert can_order_again(make_item("Logo Patch"), snapshot, [], new_student) is False

    def test_disabled_until_limits_are_confirmed(self, new_student):
        snapshot = LimitSnapshot.create_unconfirmed()
        assert can_order_again(make_item("Polo Jacket"), snapshot, [], new_student) is False

    def test_disabled_when_item_left_the_catalog(self, new_student):
        assert can_order_again(None, make_snapshot(), [], new_student) is False


class TestFilterCatalog:
    """Test catalog visibility."""

    def test_hides_other_gender(self, new_student):
        items = [
            make_item("Elem Blouse", gender="Female"),
            make_item("Necktie (Boys)", gender="Male"),
            make_item("ID Lace"),
        ]
        names = [i.name for i in filter_catalog(items, new_student)]

        assert names == ["Elem Blouse", "ID Lace"]

    def test_anonymous_sees_everything(self):
        items = [make_item("Elem Blouse", gender="Female"), make_item("Necktie (Boys)", gender="Male")]
        assert len(filter_catalog(items, None)) == 2

    def test_match_education_level(self, new_student):
        items = [
            make_item("College Skirt", level="College", gender="Female"),
            make_item("Elem Skirt", level="Elementary", gender="Female"),
            make_item("ID Lace", level="General"),
        ]
        names = [i.name for i in filter_catalog(items, new_student, match_education_level=True)]

        assert names == ["College Skirt", "ID Lace"]
