"""
Purpose: Location civil-time helpers.
What it does:
- utc_offset(location, on_date): "+HHMM" offset a carrier expects in a pickup timestamp
- local_now(location, now_utc): the location's wall clock for an injected UTC instant
- format_hhmm(moment): zero-padded "HH:MM" used for cutoff comparisons

Rule: Pure functions. "now" is always passed in, never read here.

utc_offset uses a month-range approximation of Australian daylight saving
(October through March inclusive). The real transitions are the first Sunday
of October and the first Sunday of April, so the first days of October and
April can be off by one hour. local_now uses the IANA zone and is exact.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from config.locations import DEFAULT_UTC_OFFSET, LOCATION_TIMEZONES


def is_daylight_saving_month(month: int) -> bool:
    return month >= 10 or month <= 3


def utc_offset(location: str, on_date: date) -> str:
    tz = LOCATION_TIMEZONES.get(location)
    if tz is None:
        return DEFAULT_UTC_OFFSET

    if not tz.has_dst:
        return tz.standard_offset

    return tz.daylight_offset if is_daylight_saving_month(on_date.month) else tz.standard_offset


def local_now(location: str, now_utc: Optional[datetime] = None) -> Optional[datetime]:
    """
    Convert an aware instant to the location's civil time.
    Returns None for locations without a timezone entry.
    """
    tz = LOCATION_TIMEZONES.get(location)
    if tz is None:
        return None

    now_utc = now_utc or datetime.now(timezone.utc)
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(ZoneInfo(tz.timezone))


def format_hhmm(moment: datetime) -> str:
    return f"{moment.hour:02d}:{moment.minute:02d}"
