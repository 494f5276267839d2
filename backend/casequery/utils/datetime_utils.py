"""
Datetime utilities
Timezone-aware replacements for datetime.utcnow() and the clock used to
resolve relative timeframes
"""
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Get current UTC time (replacement for deprecated datetime.utcnow())

    Example:
        >>> now = utc_now()
        >>> print(now.tzinfo)
        UTC
    """
    return datetime.now(timezone.utc)


def zoned_clock(tz_name: str) -> Clock:
    """
    Build a clock returning "now" in the given IANA timezone

    "this year" flips at local midnight on 1 January of that zone, so the zone
    is part of the answer, not a display detail.

    Example:
        >>> clock = zoned_clock("America/New_York")
        >>> clock().tzinfo.key
        'America/New_York'
    """
    zone = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return lambda: datetime.now(zone)


def fixed_clock(moment: datetime) -> Clock:
    """Clock frozen at one instant (tests, replays)"""
    return lambda: moment
