"""Hotel-local datetime utilities."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from pms_core.config import HOTEL_TIMEZONE


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def hotel_now() -> datetime:
    """
    Return the current wall-clock time at the hotel as a naive datetime.

    Reservation dates and times are stored hotel-local and naive, so every
    comparison (same-day undo window, no-show eligibility) happens on the
    hotel's calendar rather than UTC.

    Example:
        >>> now = hotel_now()
        >>> now.tzinfo is None
        True
    """
    return utc_now().astimezone(ZoneInfo(HOTEL_TIMEZONE)).replace(tzinfo=None)


def resolve_now(now: Optional[datetime]) -> datetime:
    """Use the caller's `now` when given, otherwise the hotel clock."""
    if now is None:
        return hotel_now()
    if now.tzinfo is not None:
        return now.astimezone(ZoneInfo(HOTEL_TIMEZONE)).replace(tzinfo=None)
    return now


def at_time(day: date, clock: Optional[time]) -> datetime:
    """Combine a calendar date with a scheduled time (midnight when unset)."""
    return datetime.combine(day, clock or time(0, 0))


def stay_end(check_in: date, check_out: date) -> date:
    """
    Exclusive end of the occupied range.

    Day-use stays (arrival == departure) still occupy the room for that day.
    """
    if check_out > check_in:
        return check_out
    return check_in + timedelta(days=1)


def nights_between(check_in: date, check_out: date) -> int:
    return max((check_out - check_in).days, 0)
