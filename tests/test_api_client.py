"""
Unit tests for the upstream REST client.

requests.Session is replaced by a MagicMock; no network traffic.
"""

import logging

import pytest
import requests
from unittest.mock import MagicMock

from core.api_client import UniformAPIClient
from core.exceptions import UpstreamResponseError, UpstreamUnavailableError


# Fixtures

@pytest.fixture
def logger():
    """Create a test logger."""
    return logging.getLogger("test")


@pytest.fixture
def mock_session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(mock_session, logger):
    return UniformAPIClient(
        "http://api.test/api/",
        token="token-1",
        timeout=5.0,
        logger=logger,
        session=mock_session,
    )


def make_response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


# Tests

class TestClientSetup:
    """Test construction."""

    def test_bearer_header(self, client, mock_session):
        assert mock_session.headers["Authorization"] == "Bearer token-1"
        assert client.base_url == "http://api.test/api"

    def test_no_token_no_auth_header(self, mock_session):
        UniformAPIClient("http://api.test/api", session=mock_session)
        assert "Authorization" not in mock_session.headers

    def test_base_url_required(self):
        with pytest.raises(ValueError):
            UniformAPIClient("")


class TestRequests:
    """Test envelope unwrapping and error mapping."""

    def test_get_items_with_education_level(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {
            "success": True,
            "data": [{"id": "inv-1", "name": "Polo Jacket"}],
        })

        rows = client.get_items(education_level="College")

        assert rows == [{"id": "inv-1", "name": "Polo Jacket"}]
        mock_session.request.assert_called_once_with(
            "GET",
            "http://api.test/api/items",
            timeout=5.0,
            params={"userEducationLevel": "College"},
        )

    def test_get_items_without_filter(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {"success": True, "data": []})
        client.get_items()

        _, kwargs = mock_session.request.call_args
        assert kwargs["params"] is None

    def test_timeout_maps_to_unavailable(self, client, mock_session):
        mock_session.request.side_effect = requests.exceptions.Timeout()

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.get_profile()

        assert exc_info.value.endpoint == "/auth/profile"

    def test_connection_error_maps_to_unavailable(self, client, mock_session):
        mock_session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(UpstreamUnavailableError):
            client.get_student_orders("s-1")

    def test_http_error(self, client, mock_session):
        mock_session.request.return_value = make_response(500, {"message": "boom"})

        with pytest.raises(UpstreamResponseError) as exc_info:
            client.get_student_orders("s-1")

        assert exc_info.value.http_status == 500
        assert exc_info.value.message == "boom"

    def test_success_false(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {"success": False, "message": "nope"})

        with pytest.raises(UpstreamResponseError):
            client.get_items()

    def test_non_json_error_body(self, client, mock_session):
        mock_session.request.return_value = make_response(502)

        with pytest.raises(UpstreamResponseError) as exc_info:
            client.get_items()

        assert exc_info.value.body == {}


class TestMaxQuantities:
    """Test the limits endpoint, including its 400 bodies."""

    def test_success_body(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {
            "success": True,
            "maxQuantities": {"logo patch": 3},
            "totalItemLimit": 5,
        })

        data = client.get_max_quantities()

        assert data["maxQuantities"] == {"logo patch": 3}

    def test_wrapped_in_data(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {
            "success": True,
            "data": {"maxQuantities": {"id lace": 2}, "totalItemLimit": 4},
        })

        assert client.get_max_quantities()["totalItemLimit"] == 4

    def test_400_with_limits_body_is_parsed(self, client, mock_session):
        mock_session.request.return_value = make_response(400, {
            "success": False,
            "message": "Profile incomplete",
            "maxQuantities": {},
            "profileIncomplete": True,
            "totalItemLimit": None,
        })

        data = client.get_max_quantities()

        assert data["profileIncomplete"] is True

    def test_400_without_limits_body_raises(self, client, mock_session):
        mock_session.request.return_value = make_response(400, {"message": "bad request"})

        with pytest.raises(UpstreamResponseError):
            client.get_max_quantities()


class TestOrders:
    """Test order endpoints address orders by UUID."""

    def test_update_order_uses_uuid_path(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {"success": True, "data": {"id": "uuid-1"}})

        client.update_order("uuid-1", {"status": "cancelled"})

        mock_session.request.assert_called_once_with(
            "PUT",
            "http://api.test/api/orders/uuid-1",
            timeout=5.0,
            json={"status": "cancelled"},
        )

    def test_convert_pre_order(self, client, mock_session):
        mock_session.request.return_value = make_response(200, {"success": True, "data": {"id": "uuid-1"}})

        client.convert_pre_order("uuid-1")

        method, url = mock_session.request.call_args[0]
        assert method == "PATCH"
        assert url == "http://api.test/api/orders/uuid-1/convert"

    def test_create_order_returns_data(self, client, mock_session):
        mock_session.request.return_value = make_response(201, {
            "success": True,
            "data": {"id": "uuid-1", "order_number": "ORD-20261016-00042"},
        })

        order = client.create_order({"items": []})

        assert order["order_number"] == "ORD-20261016-00042"
