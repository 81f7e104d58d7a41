"""
QR receipt validity, counted in weekdays.

A receipt QR stays valid for ``valid_days`` weekdays (Mon-Fri) after the
order's issuance date; Saturdays and Sundays do not consume validity.
The upstream voids unclaimed orders after the same weekday window
(VOID_UNCLAIMED_AFTER_DAYS), so both sides must count days identically.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional, Union

from config import Config
from models.order import parse_timestamp

QR_VALID_DAYS = Config.QR_VALID_DAYS

DateLike = Union[date, datetime, str, None]


def _is_weekday(day: date) -> bool:
    return day.weekday() < 5


def _to_local_date(value: DateLike) -> Optional[date]:
    """Calendar date of an instant, in local time for aware datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return value
    else:
        moment = parse_timestamp(value)
        if moment is None:
            return None
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()


def add_weekdays(start: date, count: int) -> date:
    """
    Add ``count`` weekdays to ``start``, skipping Saturdays and Sundays.

    Example:
        add_weekdays(date(2026, 10, 16), 1)  # Friday -> Monday 2026-10-19
    """
    current = start
    added = 0
    while added < count:
        current += timedelta(days=1)
        if _is_weekday(current):
            added += 1
    return current


def count_weekdays_between(start: date, end: date) -> int:
    """Weekdays in the inclusive range [start, end]; 0 if start > end."""
    if start > end:
        return 0
    count = 0
    current = start
    while current <= end:
        if _is_weekday(current):
            count += 1
        current += timedelta(days=1)
    return count


def expiry_date(issued_at: DateLike, valid_days: int = QR_VALID_DAYS) -> Optional[date]:
    """Date the receipt expires: issuance date plus ``valid_days`` weekdays."""
    issued = _to_local_date(issued_at)
    if issued is None:
        return None
    return add_weekdays(issued, valid_days)


def remaining_valid_days(
    issued_at: DateLike,
    valid_days: int = QR_VALID_DAYS,
    today: Optional[date] = None,
) -> Optional[int]:
    """
    Weekdays left until the receipt expires.

    Args:
        issued_at: When validity started (order creation)
        valid_days: Validity window in weekdays
        today: Reference date (defaults to the local date)

    Returns:
        Positive = weekdays left (today and expiry day included),
        0 = expires today, negative = weekdays past expiry (at least -1),
        None when ``issued_at`` is missing.
    """
    expiry = expiry_date(issued_at, valid_days)
    if expiry is None:
        return None
    today = today or date.today()

    if today > expiry:
        past = count_weekdays_between(expiry, today)
        return -1 if past == 0 else -past
    if today == expiry:
        return 0
    return count_weekdays_between(today, expiry)


def is_expired(
    issued_at: DateLike,
    valid_days: int = QR_VALID_DAYS,
    today: Optional[date] = None,
) -> bool:
    remaining = remaining_valid_days(issued_at, valid_days, today)
    return remaining is not None and remaining < 0
