"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/candidate_builder.py
Description: Turns recognised lines into time-distance candidates.

A line that carries both a duration and a distance becomes a candidate on its
own. Lines carrying only one of the two are paired with their closest partner
on screen; readings are usually stacked, so vertical distance weighs double.
"""

import logging
from typing import Iterable, List, Optional

from drive_decision.core.models import OcrLine, Rect, TdCandidate, TimeDistance, Token

from .quantity_parser import parse_meters, parse_seconds
from .quantity_patterns import MAX_PLAUSIBLE_METERS
from .text_normalizer import normalize

logger = logging.getLogger(__name__)

# Pairing window
_WIDTH_FACTOR = 0.75
_MIN_DX = 120
_HEIGHT_FACTOR = 2.2
_MIN_DY = 140
_SAME_ROW_GAP = 140

CANDIDATE_PADDING = 12


def tokenize(lines: Iterable[OcrLine]) -> List[Token]:
    """Parse each line; keep only lines with a duration or a distance."""
    lines = list(lines)
    tokens: List[Token] = []
    for line in lines:
        text = normalize(line.text)
        seconds = parse_seconds(text)
        meters = parse_meters(text)
        if seconds is None and meters is None:
            continue
        tokens.append(Token(rect=line.rect, text=text, seconds=seconds, meters=meters))
    logger.debug("Tokenized %d line(s) into %d token(s)", len(lines), len(tokens))
    return tokens


def _rows_overlap(a: Rect, b: Rect) -> bool:
    return a.top < b.bottom and b.top < a.bottom


def _horizontal_gap(a: Rect, b: Rect) -> int:
    return max(0, max(a.left, b.left) - min(a.right, b.right))


def is_near(a: Rect, b: Rect) -> bool:
    """Proximity predicate for pairing a time-only and a distance-only token.

    Centers must fall within a window scaled to the larger token, or the two
    must sit side by side on the same row with a small horizontal gap.
    """
    dx = abs(a.center_x - b.center_x)
    dy = abs(a.center_y - b.center_y)
    max_dx = max(_WIDTH_FACTOR * max(a.width, b.width), _MIN_DX)
    max_dy = max(_HEIGHT_FACTOR * max(a.height, b.height), _MIN_DY)
    if dx <= max_dx and dy <= max_dy:
        return True
    return _rows_overlap(a, b) and _horizontal_gap(a, b) <= _SAME_ROW_GAP


def pairing_cost(a: Rect, b: Rect) -> float:
    return abs(a.center_x - b.center_x) + 2.0 * abs(a.center_y - b.center_y)


def is_plausible(seconds: Optional[int], meters: Optional[int], provenance: str = "") -> bool:
    """Both values present and positive, distance under the route ceiling."""
    if seconds is None or meters is None or seconds <= 0 or meters <= 0:
        return False
    if meters > MAX_PLAUSIBLE_METERS:
        logger.debug("Rejected implausible distance %d m (%s)", meters, provenance)
        return False
    return True


def _make_candidate(rect: Rect, seconds: int, meters: int, provenance: str) -> Optional[TdCandidate]:
    if not is_plausible(seconds, meters, provenance):
        return None
    return TdCandidate(
        rect=rect.expanded(CANDIDATE_PADDING),
        td=TimeDistance(seconds=seconds, meters=meters),
        provenance=provenance,
    )


def build_candidates(tokens: List[Token]) -> List[TdCandidate]:
    """Group tokens into candidates.

    Args:
        tokens: Output of tokenize(), in reading order.

    Returns:
        Candidates from self-contained lines first, then paired ones. A
        distance-only token is consumed by at most one time-only token.
    """
    candidates: List[TdCandidate] = []
    time_only = [t for t in tokens if t.kind == 'time_only']
    dist_only = [t for t in tokens if t.kind == 'dist_only']

    for token in tokens:
        if token.kind != 'both':
            continue
        candidate = _make_candidate(token.rect, token.seconds, token.meters, f"line:{token.text}")
        if candidate:
            candidates.append(candidate)

    consumed = [False] * len(dist_only)
    for t_tok in time_only:
        best_idx = -1
        best_cost = 0.0
        for idx, d_tok in enumerate(dist_only):
            if consumed[idx] or not is_near(t_tok.rect, d_tok.rect):
                continue
            cost = pairing_cost(t_tok.rect, d_tok.rect)
            if best_idx < 0 or cost < best_cost:
                best_idx = idx
                best_cost = cost

        if best_idx < 0:
            logger.debug("No distance partner for '%s'", t_tok.text)
            continue

        consumed[best_idx] = True
        d_tok = dist_only[best_idx]
        candidate = _make_candidate(
            t_tok.rect.union(d_tok.rect),
            t_tok.seconds,
            d_tok.meters,
            f"pair:{t_tok.text} + {d_tok.text}",
        )
        if candidate:
            candidates.append(candidate)

    logger.debug("Built %d candidate(s) from %d token(s)", len(candidates), len(tokens))
    return candidates
