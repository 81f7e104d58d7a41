"""
Unit tests for the realtime service.

The Socket.IO client is a MagicMock; events are fed through
handle_event() or through the registered handlers.
"""

import time

import pytest
from unittest.mock import MagicMock, call

from modules.order_events import SUBSCRIBED_EVENTS
from services.realtime_service import RealtimeService


# Fixtures

@pytest.fixture
def socket_client():
    return MagicMock()


@pytest.fixture
def limits_service():
    limits = MagicMock()
    limits.student_ids = ["s-1", "s-2"]
    return limits


@pytest.fixture
def catalog_service():
    return MagicMock()


@pytest.fixture
def order_service():
    orders = MagicMock()
    orders.students_for_event.return_value = []
    return orders


@pytest.fixture
def service(socket_client, limits_service, catalog_service, order_service):
    service = RealtimeService(
        "http://socket.test",
        limits_service,
        catalog_service,
        order_service,
        client=socket_client,
        reconnect_delay_seconds=0.01,
    )
    yield service
    service.stop()


# Tests

class TestHandlerRegistration:
    """Test subscriptions."""

    def test_subscribes_to_every_event(self, service, socket_client):
        registered = [c.args[0] for c in socket_client.on.call_args_list]
        for name in SUBSCRIBED_EVENTS:
            assert name in registered
        assert "connect" in registered

    def test_registered_handler_dispatches(self, service, socket_client, catalog_service):
        handlers = {c.args[0]: c.args[1] for c in socket_client.on.call_args_list}
        handlers["item:updated"]({"id": "inv-1"})

        catalog_service.invalidate_cache.assert_called_once()


class TestHandleEvent:
    """Test event fan-out."""

    def test_item_update_invalidates_catalog(self, service, catalog_service, limits_service):
        service.handle_event("item:updated", {"id": "inv-1"})

        catalog_service.invalidate_cache.assert_called_once()
        limits_service.request_refresh.assert_not_called()

    def test_claim_refreshes_orders_and_limits(self, service, limits_service, order_service):
        event = service.handle_event("order:claimed", {"orderId": "uuid-1", "userId": "s-1"})

        assert event.order_id == "uuid-1"
        order_service.note_event.assert_called_once_with("s-1")
        limits_service.request_refresh.assert_called_once_with("s-1", "push:order:claimed")

    def test_progress_update_does_not_touch_limits(self, service, limits_service, order_service):
        service.handle_event("order:updated", {"orderId": "uuid-1", "userId": "s-1", "status": "processing"})

        order_service.note_event.assert_called_once_with("s-1")
        limits_service.request_refresh.assert_not_called()

    def test_cancellation_refreshes_limits(self, service, limits_service):
        service.handle_event("order:updated", {"order": {"id": "uuid-1", "student_id": "s-2", "status": "cancelled"}})

        limits_service.request_refresh.assert_called_once_with("s-2", "push:order:updated")

    def test_broadcast_permissions_update(self, service, limits_service, order_service):
        service.handle_event("student:permissions:updated", {})

        limits_service.request_refresh.assert_has_calls([
            call("s-1", "push:student:permissions:updated"),
            call("s-2", "push:student:permissions:updated"),
        ])
        order_service.note_event.assert_not_called()

    def test_event_for_untracked_student(self, service, limits_service, order_service):
        service.handle_event("order:claimed", {"userId": "s-9"})

        limits_service.request_refresh.assert_not_called()
        order_service.note_event.assert_not_called()

    def test_order_number_event_goes_to_its_owner(self, service, limits_service, order_service):
        order_service.students_for_event.return_value = ["s-2"]

        event = service.handle_event("order:claimed", {"orderNumber": "ORD-20261018-00001"})

        order_service.students_for_event.assert_called_once_with(event, ["s-1", "s-2"])
        order_service.note_event.assert_called_once_with("s-2")
        limits_service.request_refresh.assert_called_once_with("s-2", "push:order:claimed")

    def test_unmatched_order_event_is_broadcast(self, service, limits_service):
        service.handle_event("order:claimed", {"orderNumber": "ORD-20261018-00001"})

        assert limits_service.request_refresh.call_count == 2

    def test_user_id_skips_order_matching(self, service, order_service):
        service.handle_event("order:claimed", {"orderId": "uuid-1", "userId": "s-1"})

        order_service.students_for_event.assert_not_called()

    def test_connect_requests_full_refresh(self, service, limits_service, catalog_service):
        service._on_connect()

        limits_service.request_refresh_all.assert_called_once_with("reconnect")
        catalog_service.invalidate_cache.assert_called_once()


class TestListenerThread:
    """Test the listener thread lifecycle."""

    def test_start_connects_and_stop_disconnects(self, service, socket_client):
        service.start()
        deadline = time.monotonic() + 2.0
        while time.monotonic() < deadline and not socket_client.connect.called:
            time.sleep(0.01)

        assert service.is_running is True
        socket_client.connect.assert_called_with("http://socket.test", wait_timeout=10)

        service.stop()

        assert service.is_running is False
        socket_client.disconnect.assert_called()
