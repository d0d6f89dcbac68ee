"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/quantity_patterns.py
Description: Regex patterns and constants for time, distance and fare parsing.
"""

import re
from typing import List, Tuple

# Known OCR misreads of unit markers, applied to lowercase text in order.
MINUTE_MISREADS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'\bm in\b'), 'min'),
    (re.compile(r'\bm1n\b'), 'min'),
    (re.compile(r'\bmn\b'), 'min'),
    (re.compile(r'\b1n\b'), 'min'),
    (re.compile(r'\brnin\b'), 'min'),
]
KM_MISREADS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'\bk m\b'), 'km'),
    (re.compile(r'\bkn\b'), 'km'),
    (re.compile(r'\bkms\b'), 'km'),
]

_NUMBER = r'(\d+(?:[.,]\d+)?)'

# Durations, tried in this order.
CLOCK_PATTERN: re.Pattern = re.compile(r'(?<![\d:])(\d{1,2}):([0-5]\d)(?![\d:])')
HOURS_PATTERN: re.Pattern = re.compile(_NUMBER + r'\s*(?:horas|hora|hrs|hr|h)\b')
MINUTES_PATTERN: re.Pattern = re.compile(_NUMBER + r'\s*(?:mins|min)\b')
SECONDS_PATTERN: re.Pattern = re.compile(_NUMBER + r'\s*(?:seg|sec|s)\b')

# Distances, tried in this order. A bare "m" must not be the start of a minute marker.
KM_PATTERN: re.Pattern = re.compile(_NUMBER + r'\s*km\b')
METERS_PATTERN: re.Pattern = re.compile(
    r'(\d+)\s*(?:metros|metro|mts|mt|m)(?![a-z0-9])(?!\s*(?:in|1n)\b)'
)

# Fares. Thousands are grouped in threes with "." or ","; a trailing group of
# one or two digits is the decimal part. Longer digit runs after a separator
# fail the match instead of being cut short.
AMOUNT = r'(\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)(?![.,]?\d)'
DEFAULT_CURRENCY_TOKENS: Tuple[str, ...] = ('MXN',)
PASSENGER_ANCHORS: Tuple[str, ...] = ('accept for', 'aceptar por')
DOLLAR_PATTERN: re.Pattern = re.compile(r'\$\s*' + AMOUNT)

# Anything longer than this is an OCR artifact, not a route leg.
MAX_PLAUSIBLE_METERS: int = 600_000

# Threshold for rapidfuzz partial_ratio on OCR-noisy anchor lines (0-100)
ANCHOR_MATCH_THRESHOLD: int = 80
