"""
Date helpers for YYYYMMDD keys
"""

import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from menu_calendar.errors import MalformedDateError


YMD_RE = re.compile(r'^\d{8}$')


def parse_ymd(ymd: str) -> date:
    """
    Parse an 8-digit date string

    Raises:
        MalformedDateError: If the value is not a real YYYYMMDD date
    """
    if not isinstance(ymd, str) or not YMD_RE.match(ymd):
        raise MalformedDateError(f"Expected YYYYMMDD, got {ymd!r}")
    try:
        return datetime.strptime(ymd, '%Y%m%d').date()
    except ValueError:
        raise MalformedDateError(f"Not a calendar date: {ymd!r}")


def to_ymd(day: date) -> str:
    return day.strftime('%Y%m%d')


def ymd_to_dot(ymd: str) -> str:
    """20250301 -> 2025.03.01"""
    return f"{ymd[:4]}.{ymd[4:6]}.{ymd[6:8]}"


def pretty_ymd(ymd: str) -> str:
    """20250301 -> 2025-03-01"""
    return f"{ymd[:4]}-{ymd[4:6]}-{ymd[6:8]}"


def make_ymd(year: int, month: int, day: int) -> Optional[str]:
    """YYYYMMDD for the given parts, or None if they don't form a real date"""
    try:
        return to_ymd(date(year, month, day))
    except ValueError:
        return None


def days_in_range(from_ymd: str, end_ymd: str) -> List[str]:
    """
    All dates from from_ymd to end_ymd inclusive

    Raises:
        MalformedDateError: If either end is malformed or the range is reversed
    """
    start = parse_ymd(from_ymd)
    end = parse_ymd(end_ymd)
    if end < start:
        raise MalformedDateError(f"Range end {end_ymd} is before start {from_ymd}")

    days = []
    current = start
    while current <= end:
        days.append(to_ymd(current))
        current += timedelta(days=1)
    return days


def months_in_range(from_ymd: str, end_ymd: str) -> List[Tuple[int, int]]:
    """(year, month) pairs touched by the range, in order"""
    months = []
    for ymd in days_in_range(from_ymd, end_ymd):
        key = (int(ymd[:4]), int(ymd[4:6]))
        if key not in months:
            months.append(key)
    return months


def today_ymd(now: Optional[datetime] = None) -> str:
    return to_ymd((now or datetime.now()).date())


def tomorrow_ymd(now: Optional[datetime] = None) -> str:
    return to_ymd((now or datetime.now()).date() + timedelta(days=1))


def week_range(now: Optional[datetime] = None) -> Tuple[str, str]:
    """Monday..Sunday of the current week"""
    today = (now or datetime.now()).date()
    monday = today - timedelta(days=today.weekday())
    return to_ymd(monday), to_ymd(monday + timedelta(days=6))
