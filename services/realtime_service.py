"""
Realtime service: Socket.IO listener in a background thread.

Subscribes to the upstream event bus and turns pushes into triggers:

    item:updated                  -> catalog cache invalidated
    order:created / order:updated -> order revision bumped, limits refreshed
                                     when the status changes counts
    order:claimed                 -> order revision bumped, limits refreshed
    student:permissions:updated   -> limits refreshed

A claim push refreshes the order list and the limits independently;
either may land first. Nothing here fetches data itself: it only bumps
counters and wakes the limits thread.

Usage:
    realtime_service = RealtimeService(url, limits_service, catalog_service, order_service)
    realtime_service.start()
    ...
    realtime_service.stop()
"""

from __future__ import annotations

import threading
from typing import Dict, Any, List, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from modules.order_events import (
    ITEM_UPDATED,
    SUBSCRIBED_EVENTS,
    OrderEvent,
    normalize_event,
)
from services.catalog_service import CatalogService
from services.limits_service import LimitsService
from services.order_service import OrderService
from logging_config import get_logger, set_thread_name


logger = get_logger(__name__)


class RealtimeService:
    """
    Background Socket.IO client.

    Attributes:
        url: Socket.IO server URL
        is_running: Whether the listener thread is active
        is_connected: Whether the socket is currently connected
    """

    def __init__(
        self,
        url: str,
        limits_service: LimitsService,
        catalog_service: CatalogService,
        order_service: OrderService,
        client: Optional[socketio.Client] = None,
        reconnect_delay_seconds: float = 5.0,
    ):
        """
        Initialize realtime service.

        Args:
            url: Socket.IO server URL
            limits_service: Receives limit refresh triggers
            catalog_service: Cache invalidated on item updates
            order_service: Order revisions bumped on order events
            client: Optional pre-built client (tests inject a mock)
            reconnect_delay_seconds: Wait before retrying a failed connect
        """
        self._url = url
        self._limits = limits_service
        self._catalog = catalog_service
        self._orders = order_service
        self._reconnect_delay = reconnect_delay_seconds

        self._client = client or socketio.Client(reconnection=True, logger=False)
        self._client.on("connect", self._on_connect)
        self._client.on("disconnect", self._on_disconnect)
        for name in SUBSCRIBED_EVENTS:
            self._client.on(name, self._make_handler(name))

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False

        logger.info(f"RealtimeService initialized ({url})")

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_connected(self) -> bool:
        return bool(getattr(self._client, "connected", False))

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _make_handler(self, name: str):
        def handler(data=None):
            self.handle_event(name, data)
        return handler

    def handle_event(self, name: str, data: Optional[Dict[str, Any]]) -> OrderEvent:
        """
        Normalize one push and fan it out to the services.

        Returns:
            The normalized event
        """
        event = normalize_event(name, data)
        logger.debug(
            f"Event {event.name}: order={event.order_id or event.order_number} "
            f"status={event.status} user={event.user_id}"
        )

        if event.name == ITEM_UPDATED:
            self._catalog.invalidate_cache()
            return event

        targets = self._targets(event)

        if event.is_order_event:
            for student_id in targets:
                self._orders.note_event(student_id)

        if event.affects_limits:
            for student_id in targets:
                self._limits.request_refresh(student_id, f"push:{event.name}")

        return event

    def _targets(self, event: OrderEvent) -> List[str]:
        """
        Tracked students an event concerns.

        A user id picks its student. Otherwise the order id / number is
        matched against each student's last seen orders, and only an
        event nobody can be matched to is broadcast.
        """
        tracked = self._limits.student_ids
        if event.user_id:
            return [sid for sid in tracked if event.concerns_student(sid)]
        if event.order_id or event.order_number:
            owners = self._orders.students_for_event(event, tracked)
            if owners:
                return owners
        return list(tracked)

    def _on_connect(self) -> None:
        logger.info("Realtime connected")
        # Anything may have changed while disconnected
        self._catalog.invalidate_cache()
        self._limits.request_refresh_all("reconnect")

    def _on_disconnect(self, *args) -> None:
        logger.warning("Realtime disconnected")

    # ------------------------------------------------------------------
    # Thread lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Start the listener thread.

        Safe to call multiple times - only starts if not already running.
        """
        if self._is_running:
            logger.warning("RealtimeService already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._listen_loop,
            name="Realtime",
            daemon=True
        )
        self._is_running = True
        self._thread.start()

    def stop(self) -> None:
        """Disconnect and stop the listener thread. Safe to call multiple times."""
        if not self._is_running:
            return

        logger.info("Stopping realtime listener...")
        self._stop_event.set()
        if self.is_connected:
            self._client.disconnect()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Realtime thread did not stop cleanly")

        self._is_running = False
        self._thread = None
        logger.info("Realtime listener stopped")

    def _listen_loop(self) -> None:
        """Connect, block until disconnected, retry until stopped."""
        set_thread_name("Realtime")
        logger.info("Realtime listener starting")

        failures = 0
        while not self._stop_event.is_set():
            try:
                self._client.connect(self._url, wait_timeout=10)
                failures = 0
                self._client.wait()
            except SocketConnectionError as e:
                failures += 1
                if failures == 1:
                    logger.warning(f"Realtime connect failed: {e}")
                elif failures % 5 == 0:
                    logger.error(f"Realtime connect still failing ({failures} attempts): {e}")
            self._stop_event.wait(self._reconnect_delay)

        logger.info("Realtime listener exiting")
