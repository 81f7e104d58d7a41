"""
Unit tests for order tab classification and sorting.
"""

import pytest

from models.order import Order
from modules.order_categories import (
    OrderCategory,
    SortOrder,
    classify,
    count_by_category,
    orders_in_category,
    sort_orders,
)


def make_order(order_id, status="pending", order_type="regular", **raw):
    data = {"id": order_id, "status": status, "order_type": order_type}
    data.update(raw)
    return Order.from_api(data)


class TestClassify:
    """Test tab buckets."""

    @pytest.mark.parametrize("status", ["pending", "processing", "ready", "payment_pending", "claimed", "completed"])
    def test_pre_orders_never_active_or_claimed(self, status):
        order = make_order("o-1", status=status, order_type="pre-order")
        assert classify(order) is OrderCategory.PRE_ORDER

    @pytest.mark.parametrize("status", ["pending", "processing", "ready", "payment_pending"])
    def test_active_statuses(self, status):
        assert classify(make_order("o-1", status=status)) is OrderCategory.ACTIVE

    @pytest.mark.parametrize("status", ["claimed", "completed"])
    def test_claimed_statuses(self, status):
        assert classify(make_order("o-1", status=status)) is OrderCategory.CLAIMED

    def test_cancelled_is_other(self):
        assert classify(make_order("o-1", status="cancelled")) is OrderCategory.OTHER

    def test_status_is_case_insensitive(self):
        assert classify(make_order("o-1", status="CLAIMED")) is OrderCategory.CLAIMED


class TestSortOrders:
    """Test date resolution and ordering."""

    @pytest.fixture
    def orders(self):
        return [
            make_order("old", created_at="2026-10-01T08:00:00Z"),
            make_order("new", createdAt="2026-10-15T08:00:00Z"),
            make_order("mid", orderDate="2026-10-08T08:00:00Z"),
            make_order("undated"),
        ]

    def test_newest_first(self, orders):
        assert [o.id for o in sort_orders(orders, SortOrder.NEWEST)] == ["new", "mid", "old", "undated"]

    def test_oldest_first(self, orders):
        assert [o.id for o in sort_orders(orders, SortOrder.OLDEST)] == ["undated", "old", "mid", "new"]

    def test_all_sorts_like_newest(self, orders):
        assert sort_orders(orders, SortOrder.ALL) == sort_orders(orders, SortOrder.NEWEST)

    def test_created_at_wins_over_updated_at(self):
        order = make_order("o-1", created_at="2026-10-01T08:00:00Z", updated_at="2026-10-10T08:00:00Z")
        assert order.order_date.day == 1

    def test_unparseable_date_falls_through_to_next_field(self):
        order = make_order("o-1", created_at="not a date", orderDate="2026-10-08T08:00:00Z")
        assert order.order_date.day == 8

    def test_ties_keep_fetch_order(self):
        orders = [make_order(f"o-{i}", created_at="2026-10-01T08:00:00Z") for i in range(4)]
        assert [o.id for o in sort_orders(orders)] == ["o-0", "o-1", "o-2", "o-3"]

    def test_parse_sort_order(self):
        assert SortOrder.parse("oldest") is SortOrder.OLDEST
        assert SortOrder.parse("OLDEST") is SortOrder.OLDEST
        assert SortOrder.parse(None) is SortOrder.NEWEST
        assert SortOrder.parse("sideways") is SortOrder.NEWEST


class TestCategories:
    """Test per-tab filtering and badge counts."""

    @pytest.fixture
    def orders(self):
        return [
            make_order("a", status="pending", created_at="2026-10-01T08:00:00Z"),
            make_order("b", status="pending", order_type="pre-order"),
            make_order("c", status="claimed"),
            make_order("d", status="ready", created_at="2026-10-05T08:00:00Z"),
            make_order("e", status="cancelled"),
        ]

    def test_orders_in_category(self, orders):
        active = orders_in_category(orders, OrderCategory.ACTIVE)
        assert [o.id for o in active] == ["d", "a"]

    def test_no_category_returns_everything(self, orders):
        assert len(orders_in_category(orders, None)) == 5

    def test_count_by_category(self, orders):
        assert count_by_category(orders) == {
            "preOrders": 1,
            "orders": 2,
            "claimed": 1,
            "other": 1,
        }
