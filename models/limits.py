"""
Per-student limit snapshot.

A point-in-time copy of ``GET /auth/max-quantities``. The portal has no
authority to change these numbers; a new snapshot replaces the old one
after every refresh.

Thread Safety:
    - LimitSnapshot is a frozen dataclass (immutable)
    - The limits service swaps snapshot references atomically
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional


STALE_AFTER_SECONDS = 60.0


def _count_map(data: Any) -> Dict[str, int]:
    """
    Normalize a key -> count map from the API.

    None values are dropped, so "key present with null" reads the same as
    "key absent" (no explicit permission).
    """
    if not isinstance(data, dict):
        return {}
    counts = {}
    for key, value in data.items():
        if value is None:
            continue
        try:
            counts[str(key)] = int(value)
        except (TypeError, ValueError):
            continue
    return counts


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class LimitSnapshot:
    """
    Point-in-time limit state for one student.

    Usage:
        snapshot = LimitSnapshot.from_response(client.get_max_quantities())
        snapshot.max_quantities.get("logo patch")  # None = no explicit permission
    """

    max_quantities: Dict[str, int] = field(default_factory=dict)
    """Item key -> cap. Absent key means no explicit permission."""

    already_ordered: Dict[str, int] = field(default_factory=dict)
    """Item key -> units in placed, not-yet-claimed orders."""

    claimed_items: Dict[str, int] = field(default_factory=dict)
    """Item key -> units already handed over."""

    total_item_limit: Optional[int] = None
    """Max distinct item keys ("slots") per order cycle; None = not configured."""

    slots_used_from_placed_orders: int = 0
    """Slots consumed by orders already placed."""

    blocked_due_to_void: bool = False
    """True once an unclaimed order was auto-voided; blocks every order."""

    profile_incomplete: bool = False

    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """When this snapshot was fetched."""

    trigger_id: int = 0
    """Refresh trigger that produced this snapshot."""

    confirmed: bool = True
    """False for the fail-closed placeholder (no successful fetch yet)."""

    @property
    def age_seconds(self) -> float:
        now = datetime.now(timezone.utc)
        return (now - self.fetched_at).total_seconds()

    @property
    def is_stale(self) -> bool:
        """Whether this snapshot is older than 60 seconds."""
        return self.age_seconds > STALE_AFTER_SECONDS

    @property
    def has_item_limit(self) -> bool:
        return self.total_item_limit is not None and self.total_item_limit > 0

    @property
    def slots_left(self) -> int:
        """Slots still available for the current order cycle."""
        if not self.has_item_limit:
            return 0
        return max(0, self.total_item_limit - max(0, self.slots_used_from_placed_orders))

    def max_for(self, key: str) -> Optional[int]:
        return self.max_quantities.get(key)

    def ordered_for(self, key: str) -> int:
        return self.already_ordered.get(key, 0)

    def claimed_for(self, key: str) -> int:
        return self.claimed_items.get(key, 0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape of the upstream endpoint."""
        return {
            "maxQuantities": dict(self.max_quantities),
            "alreadyOrdered": dict(self.already_ordered),
            "claimedItems": dict(self.claimed_items),
            "totalItemLimit": self.total_item_limit,
            "slotsUsedFromPlacedOrders": self.slots_used_from_placed_orders,
            "blockedDueToVoid": self.blocked_due_to_void,
            "profileIncomplete": self.profile_incomplete,
            "fetchedAt": self.fetched_at.isoformat(),
            "isStale": self.is_stale,
            "confirmed": self.confirmed,
        }

    @classmethod
    def from_response(cls, data: Dict[str, Any], trigger_id: int = 0) -> "LimitSnapshot":
        """
        Build a snapshot from the max-quantities body (200 or 400 alike).

        ``slotsUsedFromPlacedOrders`` falls back to the number of keys in
        ``alreadyOrdered`` when the API omits it.
        """
        already_ordered = _count_map(data.get("alreadyOrdered"))
        slots_used = _optional_int(data.get("slotsUsedFromPlacedOrders"))
        if slots_used is None:
            slots_used = len(already_ordered)

        return cls(
            max_quantities=_count_map(data.get("maxQuantities")),
            already_ordered=already_ordered,
            claimed_items=_count_map(data.get("claimedItems")),
            total_item_limit=_optional_int(data.get("totalItemLimit")),
            slots_used_from_placed_orders=slots_used,
            blocked_due_to_void=data.get("blockedDueToVoid") is True,
            profile_incomplete=data.get("profileIncomplete") is True,
            fetched_at=datetime.now(timezone.utc),
            trigger_id=trigger_id,
            confirmed=True,
        )

    @classmethod
    def create_unconfirmed(cls) -> "LimitSnapshot":
        """
        Fail-closed placeholder used until a fetch succeeds.

        No explicit permissions and no configured item limit, so the
        evaluator falls back to conservative defaults and never allows an
        order under an undefined limit.
        """
        return cls(
            fetched_at=datetime(1970, 1, 1, tzinfo=timezone.utc),
            confirmed=False,
        )
