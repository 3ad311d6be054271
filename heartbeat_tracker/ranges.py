"""
Time Range Utilities.

Window boundaries used by the report builders. Every function takes the
caller's "now" as a naive local datetime so reports are reproducible.
Windows are half-open: (start, end) means start <= t < end.
"""

from __future__ import annotations

from datetime import datetime, timedelta

ONE_SECOND = timedelta(seconds=1)


def start_of_day(moment: datetime) -> datetime:
    """Midnight of the given day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(moment: datetime) -> datetime:
    """
    Monday midnight of the week containing moment.

    Sunday belongs to the week that started six days earlier.
    """
    return start_of_day(moment) - timedelta(days=moment.weekday())


def start_of_month(moment: datetime) -> datetime:
    """Midnight of the first day of the month."""
    return start_of_day(moment).replace(day=1)


def to_ms(moment: datetime) -> int:
    """Epoch milliseconds for a naive local datetime."""
    return int(moment.timestamp() * 1000)


def get_today_range(now: datetime) -> tuple[datetime, datetime]:
    """
    Get the full-day range for today.

    Returns:
        A tuple of (start_of_today, start_of_tomorrow).
    """
    start = start_of_day(now)
    return start, start + timedelta(days=1)


def get_yesterday_range(now: datetime) -> tuple[datetime, datetime]:
    """
    Get the full-day range for yesterday.

    Returns:
        A tuple of (start_of_yesterday, start_of_today).
    """
    today = start_of_day(now)
    return today - timedelta(days=1), today


def get_week_range(now: datetime) -> tuple[datetime, datetime]:
    """
    Get the range for the current week (Monday to now).

    The upper bound is now plus one second so the in-progress instant is
    included.
    """
    return start_of_week(now), now + ONE_SECOND


def get_month_range(now: datetime) -> tuple[datetime, datetime]:
    """Get the calendar month to date, including the current instant."""
    return start_of_month(now), now + ONE_SECOND


def get_last_week_range(now: datetime) -> tuple[datetime, datetime]:
    """
    Get the range for last week (Monday to Monday).

    Returns:
        A tuple of (start_of_last_week, start_of_this_week).
    """
    this_week_start = start_of_week(now)
    return this_week_start - timedelta(days=7), this_week_start


def get_day_ranges(start: datetime, days: int = 7) -> list[tuple[datetime, datetime]]:
    """Split the days following start into consecutive full-day ranges."""
    first = start_of_day(start)
    return [
        (first + timedelta(days=index), first + timedelta(days=index + 1))
        for index in range(days)
    ]


def get_lookback_range(now: datetime, oldest: datetime | None) -> tuple[datetime, datetime]:
    """
    Get a window reaching back to the day of the oldest stored heartbeat.

    The window length is the number of calendar days between the oldest
    heartbeat and now, with a minimum of one day.

    Args:
        now: Reference time.
        oldest: Time of the oldest heartbeat, or None for an empty store.

    Returns:
        A tuple of (lookback_start, now + 1 second).
    """
    today = start_of_day(now)
    days = (today - start_of_day(oldest)).days if oldest else 0
    return today - timedelta(days=max(1, days)), now + ONE_SECOND


def get_custom_range(start_str: str, end_str: str) -> tuple[datetime, datetime]:
    """
    Get a custom time range from date strings.

    Args:
        start_str: Start date in YYYY-MM-DD format.
        end_str: End date in YYYY-MM-DD format.

    Returns:
        A tuple of (start_datetime, end_datetime).
        The end time is set to 23:59:59 of the end date.
    """
    start = datetime.strptime(start_str, "%Y-%m-%d")
    end = datetime.strptime(end_str, "%Y-%m-%d").replace(
        hour=23, minute=59, second=59
    )
    return start, end
