"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/text_normalizer.py
Description: Cleans one line of recognised text before quantity parsing.
"""

import re

from .quantity_patterns import KM_MISREADS, MINUTE_MISREADS

_WHITESPACE = re.compile(r'\s+')

# Corrections are re-applied until the text stops changing, which keeps
# normalize(normalize(s)) == normalize(s). A handful of rounds always suffices.
_MAX_ROUNDS = 5


def _apply_misreads(text: str) -> str:
    for pattern, replacement in MINUTE_MISREADS:
        text = pattern.sub(replacement, text)
    for pattern, replacement in KM_MISREADS:
        text = pattern.sub(replacement, text)
    return text


def normalize(text: str) -> str:
    """Lowercase, collapse whitespace and fix known unit misreads.

    Decimal commas are left alone; the quantity parser treats them as decimal
    separators.

    Args:
        text: Raw recognised text. None is treated as empty.

    Returns:
        The normalized string.
    """
    if not text:
        return ""

    result = _WHITESPACE.sub(' ', text.lower()).strip()
    for _ in range(_MAX_ROUNDS):
        corrected = _WHITESPACE.sub(' ', _apply_misreads(result)).strip()
        if corrected == result:
            break
        result = corrected
    return result
