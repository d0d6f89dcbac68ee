"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/quantity_parser.py
Description: Extracts a duration (seconds) and a distance (meters) from normalized text.

Each unit format is an independent matcher returning an int or None. The
public parsers walk an ordered list of matchers and stop at the first hit.
"""

import re
from typing import Callable, List, Optional

from .quantity_patterns import (
    CLOCK_PATTERN,
    HOURS_PATTERN,
    KM_PATTERN,
    METERS_PATTERN,
    MINUTES_PATTERN,
    SECONDS_PATTERN,
)

Matcher = Callable[[str], Optional[int]]


def _to_float(number: str) -> float:
    return float(number.replace(',', '.'))


def _scaled(pattern: re.Pattern, factor: float) -> Matcher:
    def match(text: str) -> Optional[int]:
        m = pattern.search(text)
        if not m:
            return None
        return int(round(_to_float(m.group(1)) * factor))
    return match


def match_clock(text: str) -> Optional[int]:
    """Colon clock reading, e.g. "1:30" -> 90 (minutes:seconds)."""
    m = CLOCK_PATTERN.search(text)
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


match_hours = _scaled(HOURS_PATTERN, 3600)
match_minutes = _scaled(MINUTES_PATTERN, 60)
match_secs = _scaled(SECONDS_PATTERN, 1)
match_km = _scaled(KM_PATTERN, 1000)
match_meters = _scaled(METERS_PATTERN, 1)

SECONDS_MATCHERS: List[Matcher] = [match_clock, match_hours, match_minutes, match_secs]
METERS_MATCHERS: List[Matcher] = [match_km, match_meters]


def _first_match(matchers: List[Matcher], text: str) -> Optional[int]:
    if not text:
        return None
    for matcher in matchers:
        value = matcher(text)
        if value is not None:
            return value
    return None


def parse_seconds(text: str) -> Optional[int]:
    """Return the first duration found in `text`, in seconds, or None."""
    return _first_match(SECONDS_MATCHERS, text)


def parse_meters(text: str) -> Optional[int]:
    """Return the first distance found in `text`, in meters, or None.

    Kilometres win over metres, so "1.2 km" is 1200 and never 1 or 2 m.
    """
    return _first_match(METERS_MATCHERS, text)


def format_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return "?"
    minutes = int(round(seconds / 60.0))
    if minutes >= 60:
        return f"{minutes // 60} h {minutes % 60:02d} min"
    return f"{minutes} min"


def format_distance(meters: Optional[int]) -> str:
    if meters is None:
        return "?"
    if meters >= 1000:
        return f"{meters / 1000.0:.1f} km"
    return f"{meters} m"
