"""
Per-student limit snapshot service with background refresh thread.

Keeps the latest ``GET /auth/max-quantities`` snapshot for every signed-in
student. Snapshots are re-fetched when something may have changed them:

    - session start (student signs in)
    - order created / cancelled / converted (explicit trigger)
    - tab visibility regained (POST /api/limits/refresh)
    - realtime push (claim, permissions update)
    - periodic poll every ``refresh_interval_seconds``

COALESCING:
    Triggers only bump a per-student counter. A fetch stamps itself with
    the counter value it saw when it started, so ten triggers before a
    fetch cost one fetch of the latest state, never ten replays.

ORDERING:
    A response stamped with trigger n never replaces a snapshot produced
    by trigger m > n. A slow, superseded fetch is discarded.

FAIL CLOSED:
    A failed fetch keeps the last confirmed snapshot. A student with no
    confirmed snapshot gets LimitSnapshot.create_unconfirmed(), under
    which nothing can be ordered.

Usage:
    limits_service = LimitsService(client_factory)
    limits_service.start()

    limits_service.register(student)              # on sign-in
    limits_service.request_refresh(student.id, "order-created")
    snapshot = limits_service.get_snapshot(student.id)

    limits_service.stop()
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from core.api_client import UniformAPIClient
from core.exceptions import LimitsNotReadyError
from models.limits import LimitSnapshot
from models.student import Student
from logging_config import get_logger, get_student_logger, set_thread_name


logger = get_logger(__name__)

ClientFactory = Callable[[Student], UniformAPIClient]


@dataclass
class _StudentLimits:
    """Mutable per-student bookkeeping (guarded by the service lock)."""

    student: Student
    snapshot: LimitSnapshot = field(default_factory=LimitSnapshot.create_unconfirmed)
    requested_trigger: int = 0
    consecutive_failures: int = 0

    @property
    def has_pending_trigger(self) -> bool:
        return self.requested_trigger > self.snapshot.trigger_id


class LimitsService:
    """
    Background service for per-student limit snapshots.

    Attributes:
        refresh_interval_seconds: Time between periodic polls (default 30)
        is_running: Whether the background thread is active
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        refresh_interval_seconds: float = 30.0
    ):
        """
        Initialize limits service.

        Args:
            client_factory: Builds an API client bound to a student's token
            refresh_interval_seconds: Seconds between periodic polls
        """
        self._client_factory = client_factory
        self._refresh_interval = refresh_interval_seconds

        self._students: Dict[str, _StudentLimits] = {}
        self._lock = threading.Lock()

        # Thread control
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._is_running = False

        logger.info(f"LimitsService initialized (refresh interval: {refresh_interval_seconds}s)")

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def refresh_interval_seconds(self) -> float:
        return self._refresh_interval

    @property
    def student_ids(self) -> List[str]:
        with self._lock:
            return list(self._students)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, student: Student) -> int:
        """
        Track a student and schedule the first fetch (component mount).

        Re-registering keeps the existing snapshot but picks up a new token.

        Returns:
            Trigger id of the scheduled refresh
        """
        with self._lock:
            state = self._students.get(student.id)
            if state is None:
                self._students[student.id] = _StudentLimits(student=student)
                logger.info(f"Tracking limits for student {student.id}")
            else:
                state.student = student
        return self.request_refresh(student.id, "session-start")

    def unregister(self, student_id: str) -> None:
        with self._lock:
            if self._students.pop(student_id, None) is not None:
                logger.info(f"Stopped tracking limits for student {student_id}")

    def is_registered(self, student_id: str) -> bool:
        with self._lock:
            return student_id in self._students

    # ------------------------------------------------------------------
    # Triggers and reads
    # ------------------------------------------------------------------

    def request_refresh(self, student_id: str, reason: str = "explicit") -> int:
        """
        Ask for a fresh snapshot. Never blocks.

        Returns:
            The new trigger id, or 0 when the student is not tracked
        """
        with self._lock:
            state = self._students.get(student_id)
            if state is None:
                logger.debug(f"Refresh for untracked student {student_id} ignored ({reason})")
                return 0
            state.requested_trigger += 1
            trigger_id = state.requested_trigger

        get_student_logger(student_id).debug(f"Limits refresh requested: {reason} (trigger {trigger_id})")
        self._wake_event.set()
        return trigger_id

    def request_refresh_all(self, reason: str = "poll") -> int:
        """Trigger a refresh for every tracked student. Returns the count."""
        ids = self.student_ids
        for student_id in ids:
            self.request_refresh(student_id, reason)
        return len(ids)

    def get_snapshot(self, student_id: str) -> LimitSnapshot:
        """
        Current snapshot for a student (never None).

        Untracked students and students without a successful fetch get the
        fail-closed placeholder.
        """
        with self._lock:
            state = self._students.get(student_id)
            return state.snapshot if state else LimitSnapshot.create_unconfirmed()

    def get_confirmed_snapshot(self, student_id: str) -> LimitSnapshot:
        """
        Current snapshot, raising if no fetch has ever succeeded.

        Raises:
            LimitsNotReadyError
        """
        snapshot = self.get_snapshot(student_id)
        if not snapshot.confirmed:
            raise LimitsNotReadyError(student_id)
        return snapshot

    def refresh_now(self, student_id: str, reason: str = "explicit") -> bool:
        """
        Trigger and perform a refresh in the calling thread.

        Used right after order mutations so the response already reflects
        the new counts.

        Returns:
            True if a snapshot was applied
        """
        if self.request_refresh(student_id, reason) == 0:
            return False
        return self._do_refresh(student_id)

    # ------------------------------------------------------------------
    # Thread lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Start the background refresh thread.

        Safe to call multiple times - only starts if not already running.
        """
        if self._is_running:
            logger.warning("LimitsService already running")
            return

        logger.info("Starting limits refresh thread...")
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._refresh_loop,
            name="Limits",
            daemon=True
        )
        self._is_running = True
        self._thread.start()

    def stop(self) -> None:
        """Stop the background refresh thread. Safe to call multiple times."""
        if not self._is_running:
            return

        logger.info("Stopping limits refresh thread...")
        self._stop_event.set()
        self._wake_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Limits thread did not stop cleanly")

        self._is_running = False
        self._thread = None
        logger.info("Limits refresh thread stopped")

    def _refresh_loop(self) -> None:
        """
        Background thread main loop.

        Wakes on a trigger or when the poll interval elapses; a timeout
        counts as a poll trigger for every tracked student.
        """
        set_thread_name("Limits")
        logger.info("Limits refresh loop starting")

        self.refresh_pending()

        while not self._stop_event.is_set():
            triggered = self._wake_event.wait(timeout=self._refresh_interval)
            if self._stop_event.is_set():
                break
            self._wake_event.clear()

            if not triggered:
                self.request_refresh_all("poll")
                self._wake_event.clear()

            self.refresh_pending()

        logger.info("Limits refresh loop exiting")

    def refresh_pending(self) -> int:
        """
        Fetch once for every student with an unserved trigger.

        Returns:
            Number of snapshots applied
        """
        with self._lock:
            pending = [sid for sid, state in self._students.items() if state.has_pending_trigger]

        applied = 0
        for student_id in pending:
            if self._stop_event.is_set():
                break
            if self._do_refresh(student_id):
                applied += 1
        return applied

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def _do_refresh(self, student_id: str) -> bool:
        """
        Fetch one student's limits and apply them unless superseded.

        Returns:
            True if the fetched snapshot was applied
        """
        with self._lock:
            state = self._students.get(student_id)
            if state is None:
                return False
            student = state.student
            trigger_id = state.requested_trigger

        student_logger = get_student_logger(student_id)

        try:
            client = self._client_factory(student)
            data = client.get_max_quantities()
            snapshot = LimitSnapshot.from_response(data, trigger_id=trigger_id)
        except Exception as e:
            self._record_failure(student_id, e)
            return False

        with self._lock:
            state = self._students.get(student_id)
            if state is None:
                return False
            if trigger_id < state.snapshot.trigger_id:
                student_logger.debug(
                    f"Discarding limits from trigger {trigger_id}; "
                    f"trigger {state.snapshot.trigger_id} already applied"
                )
                return False

            state.snapshot = snapshot
            if state.consecutive_failures > 0:
                logger.info(
                    f"Limits refresh for {student_id} recovered after "
                    f"{state.consecutive_failures} failures"
                )
            state.consecutive_failures = 0

        student_logger.debug(
            f"Limits refreshed (trigger {trigger_id}): "
            f"{len(snapshot.max_quantities)} permissions, "
            f"slots {snapshot.slots_used_from_placed_orders}/{snapshot.total_item_limit}, "
            f"void_block={snapshot.blocked_due_to_void}"
        )
        return True

    def _record_failure(self, student_id: str, error: Exception) -> None:
        """Count a failure and log with increasing severity."""
        with self._lock:
            state = self._students.get(student_id)
            if state is None:
                return
            state.consecutive_failures += 1
            failures = state.consecutive_failures

        if failures == 1:
            logger.warning(f"Limits refresh failed for {student_id}: {error}")
        elif failures <= 3:
            logger.error(f"Limits refresh failed for {student_id} ({failures} consecutive): {error}")
        elif failures % 5 == 0:
            # Only every 5th failure after that to avoid spam
            logger.error(
                f"Limits refresh still failing for {student_id} ({failures} consecutive): {error}"
            )
