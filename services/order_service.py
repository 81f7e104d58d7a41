"""
Order service: checkout, cancel, pre-order conversion and receipts.

Every mutation re-checks the request against a CONFIRMED limit snapshot
before it reaches the upstream API, and asks the limits service for a
refresh afterwards so the next screen sees the new counts.

DUPLICATE SUBMISSIONS:
    Mutations run synchronously in the request thread. A second request
    for the same order id (or the same student's checkout) while the
    first is still in flight is rejected with DuplicateSubmissionError
    instead of being sent twice.

Usage:
    order_service = OrderService(limits_service, catalog_service, client_factory)

    order = order_service.checkout(student, cart_lines)
    order_service.cancel(student, order.id)
    receipt = order_service.receipt(student, order.id)
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date
from typing import Callable, Dict, Any, Iterator, List, Optional, Set, Tuple

from core.api_client import UniformAPIClient
from core.exceptions import (
    DuplicateSubmissionError,
    OrderError,
    OrderNotEligibleError,
    OrderNotFoundError,
)
from models.item import Item, ItemGroup
from models.order import (
    ACTIVE_STATUSES,
    PRE_ORDER,
    REGULAR_ORDER,
    CartLine,
    Order,
    OrderStatus,
)
from models.student import Student
from modules.eligibility import DisabledReason, cart_keys, evaluate
from modules.item_keys import resolve_key
from modules.order_events import OrderEvent, matches_order
from modules.receipt_qr import build_receipt_payload, generate_order_number, validate_order_data
from modules.receipt_validity import QR_VALID_DAYS, expiry_date, remaining_valid_days
from services.catalog_service import CatalogService
from services.limits_service import LimitsService
from logging_config import get_logger, get_student_logger


logger = get_logger(__name__)

ClientFactory = Callable[[Optional[Student]], UniformAPIClient]


class InFlightRegistry:
    """
    Thread-safe set of keys with a mutation in progress.

    Usage:
        with registry.guard(order_id, "cancel"):
            client.update_order(order_id, {...})
    """

    def __init__(self):
        self._keys: Set[str] = set()
        self._lock = threading.Lock()

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    @contextmanager
    def guard(self, key: str, action: str) -> Iterator[None]:
        """
        Hold ``key`` for the duration of the block.

        Raises:
            DuplicateSubmissionError: ``key`` is already held
        """
        with self._lock:
            if key in self._keys:
                raise DuplicateSubmissionError(key, action)
            self._keys.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._keys.discard(key)


class OrderService:
    """
    Order mutations and reads for signed-in students.

    Attributes:
        in_flight: Registry of mutations currently running
        qr_valid_days: Receipt validity window in weekdays
    """

    def __init__(
        self,
        limits_service: LimitsService,
        catalog_service: CatalogService,
        client_factory: ClientFactory,
        qr_valid_days: int = QR_VALID_DAYS,
    ):
        self._limits = limits_service
        self._catalog = catalog_service
        self._client_factory = client_factory
        self._qr_valid_days = qr_valid_days
        self._in_flight = InFlightRegistry()

        # Bumped on every order change so clients can tell their list is old
        self._revisions: Dict[str, int] = {}
        # Last order list seen per student, for matching pushes without a user id
        self._known_orders: Dict[str, Tuple[Order, ...]] = {}
        self._revisions_lock = threading.Lock()

        logger.info("OrderService initialized")

    @property
    def in_flight(self) -> InFlightRegistry:
        return self._in_flight

    @property
    def qr_valid_days(self) -> int:
        return self._qr_valid_days

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def note_event(self, student_id: str) -> int:
        """Record that a student's orders changed. Returns the new revision."""
        with self._revisions_lock:
            revision = self._revisions.get(student_id, 0) + 1
            self._revisions[student_id] = revision
            return revision

    def revision(self, student_id: str) -> int:
        with self._revisions_lock:
            return self._revisions.get(student_id, 0)

    def students_for_event(self, event: OrderEvent, student_ids: List[str]) -> List[str]:
        """
        Students among ``student_ids`` whose last seen orders include the
        event's order (by UUID or order number).
        """
        with self._revisions_lock:
            known = {sid: self._known_orders.get(sid, ()) for sid in student_ids}
        return [
            sid for sid, orders in known.items()
            if any(matches_order(event, order) for order in orders)
        ]

    def forget(self, student_id: str) -> None:
        """Drop the revision and cached orders of a signed-out student."""
        with self._revisions_lock:
            self._revisions.pop(student_id, None)
            self._known_orders.pop(student_id, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_orders(self, student: Student) -> List[Order]:
        """
        All orders of a student, as the upstream API reports them.

        Raises:
            UpstreamUnavailableError / UpstreamResponseError
        """
        client = self._client_factory(student)
        rows = client.get_student_orders(student.id)
        orders = [Order.from_api(row) for row in rows]
        with self._revisions_lock:
            self._revisions.setdefault(student.id, 0)
            self._known_orders[student.id] = tuple(orders)
        return orders

    def find_order(self, student: Student, order_id: str) -> Order:
        """
        One of the student's orders by UUID.

        Raises:
            OrderNotFoundError: Not among the student's orders
        """
        for order in self.list_orders(student):
            if order.id == order_id:
                return order
        raise OrderNotFoundError(order_id)

    def receipt(self, student: Student, order_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """
        QR receipt data for an order.

        Returns:
            Dictionary with the QR payload string and its validity

        Raises:
            OrderNotFoundError, ReceiptValidationError
        """
        order = self.find_order(student, order_id)
        payload = build_receipt_payload(order, student, self._qr_valid_days)
        remaining = remaining_valid_days(order.qr_issued_at, self._qr_valid_days, today)
        expires_on = expiry_date(order.qr_issued_at, self._qr_valid_days)
        return {
            "orderId": order.id,
            "orderNumber": order.order_number,
            "qrData": payload,
            "qrValidDays": self._qr_valid_days,
            "remainingValidDays": remaining,
            "expiresOn": expires_on.isoformat() if expires_on else None,
            "expired": remaining is not None and remaining < 0,
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def checkout(self, student: Student, cart: List[CartLine], notes: str = "") -> Order:
        """
        Place one order for every line in the cart.

        The order is a pre-order when any picked size is out of stock.

        Args:
            student: Signed-in student
            cart: Cart lines from the session
            notes: Free text (already sanitized by the route)

        Returns:
            The created Order

        Raises:
            LimitsNotReadyError: No confirmed snapshot yet
            OrderNotEligibleError: A key exceeds what the evaluator allows
            OrderError: Empty cart, unknown item or too many distinct items
            DuplicateSubmissionError: Checkout already running for the student
        """
        student_logger = get_student_logger(student.id)

        with self._in_flight.guard(f"checkout:{student.id}", "checkout"):
            snapshot = self._limits.get_confirmed_snapshot(student.id)

            lines = [line for line in cart if line.quantity > 0]
            if not lines:
                raise OrderError("Your cart is empty")

            groups = self._catalog.get_groups(student, force_refresh=True)
            resolved = self._resolve_lines(lines, groups)

            if snapshot.has_item_limit and len(cart_keys(lines)) > snapshot.slots_left:
                raise OrderError(
                    "Your cart has more different items than you have order slots left",
                    details={
                        "slots_left": snapshot.slots_left,
                        "reasons": [DisabledReason.SLOT_LIMIT_FULL.value],
                    },
                )

            requested_by_key: Dict[str, Tuple[ItemGroup, int]] = {}
            for line, group, _variation in resolved:
                key = resolve_key(line.name)
                _, total = requested_by_key.get(key, (group, 0))
                requested_by_key[key] = (group, total + line.quantity)

            for key, (group, requested) in requested_by_key.items():
                # Zero this key's own lines so they count as a slot, not as usage
                others = [
                    CartLine(l.inventory_id, l.name, l.size, 0) if resolve_key(l.name) == key else l
                    for l in lines
                ]
                decision = evaluate(group, snapshot, others, student)
                if requested > decision.effective_max:
                    raise OrderNotEligibleError(
                        group.name,
                        requested,
                        decision.effective_max,
                        [r.value for r in decision.disabled_reasons],
                    )

            payload = self._build_order_payload(student, resolved, notes)
            valid, errors = validate_order_data(payload)
            if not valid:
                raise OrderError("Order details are incomplete", details={"errors": errors})

            client = self._client_factory(student)
            created = client.create_order(payload)

        order = Order.from_api(created or payload)
        with self._revisions_lock:
            self._known_orders[student.id] = self._known_orders.get(student.id, ()) + (order,)
        student_logger.info(
            f"Order {order.order_number} placed ({order.order_type}, {order.total_quantity} units)"
        )

        self.note_event(student.id)
        self._limits.refresh_now(student.id, "order-created")
        return order

    def cancel(self, student: Student, order_id: str) -> Order:
        """
        Cancel an active order (addressed by UUID).

        Raises:
            OrderNotFoundError, OrderError, DuplicateSubmissionError
        """
        with self._in_flight.guard(order_id, "cancel"):
            order = self.find_order(student, order_id)
            if order.status not in ACTIVE_STATUSES:
                raise OrderError(f"A {order.status} order cannot be cancelled", order_id)

            client = self._client_factory(student)
            updated = client.update_order(order.id, {"status": OrderStatus.CANCELLED.value})

        get_student_logger(student.id).info(f"Order {order.order_number} cancelled")
        self.note_event(student.id)
        self._limits.refresh_now(student.id, "order-cancelled")
        return Order.from_api(updated) if updated else order

    def convert_pre_order(self, student: Student, order_id: str) -> Order:
        """
        Turn a pre-order into a regular order.

        Raises:
            OrderNotFoundError, OrderError, DuplicateSubmissionError
        """
        with self._in_flight.guard(order_id, "convert"):
            order = self.find_order(student, order_id)
            if not order.is_pre_order:
                raise OrderError("Only pre-orders can be converted", order_id)
            if order.status == OrderStatus.CANCELLED.value:
                raise OrderError("A cancelled pre-order cannot be converted", order_id)

            client = self._client_factory(student)
            updated = client.convert_pre_order(order.id)

        get_student_logger(student.id).info(f"Pre-order {order.order_number} converted")
        self.note_event(student.id)
        self._limits.refresh_now(student.id, "order-converted")
        return Order.from_api(updated) if updated else order

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_lines(
        self,
        lines: List[CartLine],
        groups: List[ItemGroup],
    ) -> List[Tuple[CartLine, ItemGroup, Item]]:
        resolved = []
        for line in lines:
            group = self._catalog.find_group(groups, line.inventory_id)
            if group is None:
                raise OrderError(f"{line.name} is no longer available")
            variation = group.variation_by_id(line.inventory_id)
            sized = group.variation_for_size(line.size)
            if sized is not None:
                variation = sized
            resolved.append((line, group, variation))
        return resolved

    def _build_order_payload(
        self,
        student: Student,
        resolved: List[Tuple[CartLine, ItemGroup, Item]],
        notes: str,
    ) -> Dict[str, Any]:
        is_pre_order = any(variation.stock <= 0 for _, _, variation in resolved)
        order_type = PRE_ORDER if is_pre_order else REGULAR_ORDER

        items = [
            {
                "name": group.name,
                "size": line.size or "N/A",
                "quantity": line.quantity,
                "item_type": variation.item_type,
                "education_level": variation.education_level,
                "image": variation.image,
            }
            for line, group, variation in resolved
        ]
        total_amount = sum(variation.price * line.quantity for line, _, variation in resolved)

        if not notes:
            label = "Pre-order" if is_pre_order else "Order"
            notes = f"{label} placed via cart checkout. {len(items)} item(s) ordered."

        return {
            "order_number": generate_order_number(),
            "student_id": student.id,
            "student_name": student.name or student.email,
            "student_email": student.email,
            "education_level": student.education_level or "General",
            "items": items,
            "total_amount": total_amount,
            "status": OrderStatus.PENDING.value,
            "order_type": order_type,
            "notes": notes,
        }
