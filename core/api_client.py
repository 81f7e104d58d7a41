"""
HTTP client for the upstream uniform API.

One client instance is bound to one student's bearer token. The limits
refresh thread and request handlers each build their own client, so no
``requests.Session`` is shared between threads.

Every endpoint answers ``{success, data, message}``. Failures surface as:
    - UpstreamUnavailableError : connection errors and timeouts
    - UpstreamResponseError    : HTTP error status or ``success: false``

Usage:
    client = UniformAPIClient(base_url, token=student.token)

    items = client.get_items(education_level="Senior High School")
    limits = client.get_max_quantities()
    order = client.create_order(payload)
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Any, List, Optional

import requests

from .exceptions import UpstreamResponseError, UpstreamUnavailableError


class UniformAPIClient:
    """
    Thin wrapper around the upstream REST endpoints.

    The client never interprets business data: snake_case translation and
    limit evaluation live in ``models`` and ``modules``. It only sends
    requests, unwraps the ``{success, data}`` envelope and maps failures
    to portal exceptions.

    Attributes:
        base_url: API root, e.g. ``http://localhost:5000/api``
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root URL
            token: Student bearer token (None for public endpoints)
            timeout: Per-request timeout in seconds
            logger: Logger instance (creates default if not provided)
            session: Optional pre-built session (tests inject a mock)

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError("base_url is required - set UPSTREAM_API_URL")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._logger = logger or logging.getLogger("core.api_client")
        self._thread_id = threading.get_ident()

        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if token:
            self._session.headers.update({"Authorization": f"Bearer {token}"})

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_items(self, education_level: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Fetch catalog rows (one row per size variant, snake_case fields).

        Args:
            education_level: Optional student education level filter

        Returns:
            List of raw item dictionaries
        """
        params = {"userEducationLevel": education_level} if education_level else None
        body = self._request("GET", "/items", params=params)
        data = body.get("data") or []
        self._logger.debug(f"[Thread {self._thread_id}] Items fetched: {len(data)} rows")
        return data

    # ------------------------------------------------------------------
    # Auth / limits
    # ------------------------------------------------------------------

    def get_profile(self) -> Dict[str, Any]:
        """Fetch the signed-in student's profile."""
        body = self._request("GET", "/auth/profile")
        return body.get("data") or body

    def get_max_quantities(self) -> Dict[str, Any]:
        """
        Fetch the student's limit snapshot.

        The endpoint answers HTTP 400 (e.g. profile incomplete) with the same
        shape as a success body. That body is returned unchanged so it is
        parsed exactly like a 200.

        Returns:
            Raw limits dictionary (``maxQuantities``, ``alreadyOrdered``, ...)
        """
        try:
            body = self._request("GET", "/auth/max-quantities")
        except UpstreamResponseError as e:
            if e.http_status == 400 and _looks_like_limits(e.body):
                self._logger.info(
                    f"[Thread {self._thread_id}] max-quantities answered 400, using error body"
                )
                return e.body.get("data") if _looks_like_limits(e.body.get("data")) else e.body
            raise
        data = body.get("data")
        return data if _looks_like_limits(data) else body

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def get_student_orders(self, student_id: str) -> List[Dict[str, Any]]:
        """Fetch all orders placed by a student."""
        body = self._request("GET", f"/orders/student/{student_id}")
        data = body.get("data") or []
        self._logger.debug(f"[Thread {self._thread_id}] Orders fetched: {len(data)}")
        return data

    def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Place an order (regular or pre-order).

        Args:
            payload: Order body (``order_type``, ``items``, ...)

        Returns:
            Created order dictionary
        """
        body = self._request("POST", "/orders", json=payload)
        order = body.get("data") or {}
        self._logger.info(
            f"[Thread {self._thread_id}] Order created: {order.get('order_number', '?')}"
        )
        return order

    def update_order(self, order_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update an order. ``order_id`` must be the UUID, never the order number.
        """
        body = self._request("PUT", f"/orders/{order_id}", json=payload)
        return body.get("data") or {}

    def convert_pre_order(self, order_id: str) -> Dict[str, Any]:
        """Convert a pre-order into a regular order once stock is back."""
        body = self._request("PATCH", f"/orders/{order_id}/convert")
        return body.get("data") or {}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Send a request and unwrap the response envelope.

        Raises:
            UpstreamUnavailableError: Connection failure or timeout
            UpstreamResponseError: HTTP error or ``success: false``
        """
        url = f"{self.base_url}{path}"
        self._logger.debug(f"[Thread {self._thread_id}] {method} {path}")

        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            self._logger.warning(f"[Thread {self._thread_id}] {method} {path} timed out")
            raise UpstreamUnavailableError(path, f"timed out after {self.timeout:.0f}s")
        except requests.exceptions.RequestException as e:
            self._logger.warning(f"[Thread {self._thread_id}] {method} {path} failed: {e}")
            raise UpstreamUnavailableError(path, str(e))

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.status_code >= 400:
            raise UpstreamResponseError(
                path,
                response.status_code,
                body.get("message", ""),
                body,
            )

        if body.get("success") is False:
            raise UpstreamResponseError(
                path,
                response.status_code,
                body.get("message", "Request was not successful"),
                body,
            )

        return body


def _looks_like_limits(body: Any) -> bool:
    """Whether a decoded body carries limit snapshot fields."""
    return isinstance(body, dict) and (
        "maxQuantities" in body or "blockedDueToVoid" in body or "totalItemLimit" in body
    )
