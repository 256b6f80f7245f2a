"""Query window calculation for the calendar API."""
from datetime import datetime, timedelta

from processor.models import QueryWindow

MONTHS_POLICY = 'months'
UPCOMING_POLICY = 'upcoming'
WINDOW_POLICIES = (MONTHS_POLICY, UPCOMING_POLICY)


def _month_start(year: int, month: int, like: datetime) -> datetime:
    # month may run past 12 or below 1; normalize into the year
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return like.replace(
        year=year, month=month, day=1,
        hour=0, minute=0, second=0, microsecond=0
    )


def month_window(now: datetime) -> QueryWindow:
    """
    Window from the first instant of the previous month to the last
    second of the next month.

    The end is computed as one second before the start of the month two
    months ahead, so month lengths and leap years need no special casing.

    Args:
        now: Current time; its tzinfo (or lack of it) is kept

    Returns:
        QueryWindow covering previous, current and next month
    """
    time_min = _month_start(now.year, now.month - 1, now)
    time_max = _month_start(now.year, now.month + 2, now) - timedelta(seconds=1)
    return QueryWindow(time_min=time_min, time_max=time_max)


def upcoming_window(now: datetime, days_ahead: int = 90) -> QueryWindow:
    """Window from ``now`` to ``days_ahead`` days later."""
    now = now.replace(microsecond=0)
    return QueryWindow(time_min=now, time_max=now + timedelta(days=days_ahead))


def compute_window(
    now: datetime,
    policy: str = MONTHS_POLICY,
    days_ahead: int = 90
) -> QueryWindow:
    """
    Compute the query window for the configured policy.

    Raises:
        ValueError: If the policy is unknown
    """
    if policy == MONTHS_POLICY:
        return month_window(now)
    if policy == UPCOMING_POLICY:
        return upcoming_window(now, days_ahead)
    raise ValueError(f"Unknown window policy: {policy}")
