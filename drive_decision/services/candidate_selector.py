"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/candidate_selector.py
Description: Removes duplicate readings and picks the pickup and trip legs.
"""

import logging
from typing import Dict, List, Optional, Tuple

from drive_decision.core.models import TdCandidate, TimeDistance, TripEstimate

logger = logging.getLogger(__name__)

_CENTER_TOLERANCE_PX = 90
_METERS_TOLERANCE = 30


def _collapse_exact(candidates: List[TdCandidate]) -> List[TdCandidate]:
    """Keep one candidate per (seconds, meters): the one with the tightest box."""
    best: Dict[Tuple[int, int], TdCandidate] = {}
    order: List[Tuple[int, int]] = []
    for cand in candidates:
        key = (cand.td.seconds, cand.td.meters)
        kept = best.get(key)
        if kept is None:
            best[key] = cand
            order.append(key)
        elif cand.rect.area < kept.rect.area:
            best[key] = cand
    return [best[key] for key in order]


def _is_same_reading(a: TdCandidate, b: TdCandidate) -> bool:
    return (
        abs(a.rect.center_x - b.rect.center_x) <= _CENTER_TOLERANCE_PX
        and abs(a.rect.center_y - b.rect.center_y) <= _CENTER_TOLERANCE_PX
        and abs(a.td.meters - b.td.meters) <= _METERS_TOLERANCE
    )


def deduplicate(candidates: List[TdCandidate]) -> List[TdCandidate]:
    """Drop repeated detections of the same on-screen reading.

    First collapses exact (seconds, meters) duplicates, then drops near
    duplicates whose centers and distances are within tolerance of a
    candidate already kept.
    """
    kept: List[TdCandidate] = []
    for cand in _collapse_exact(candidates):
        if any(_is_same_reading(cand, other) for other in kept):
            logger.debug("Dropped near-duplicate %s", cand.provenance)
            continue
        kept.append(cand)
    if len(kept) != len(candidates):
        logger.debug("Dedup: %d -> %d candidate(s)", len(candidates), len(kept))
    return kept


def rank(candidates: List[TdCandidate]) -> List[TdCandidate]:
    """Deduplicate and sort ascending by distance."""
    return sorted(deduplicate(candidates), key=lambda c: c.td.meters)


def select_legs(ranked: List[TdCandidate]) -> Optional[TripEstimate]:
    """Pick legs from candidates already sorted by rank().

    Returns:
        None when there are no candidates. With one candidate it is the trip
        and the pickup is zero. Otherwise the shortest is the pickup and the
        longest the trip; anything in between is ignored.
    """
    if not ranked:
        return None
    if len(ranked) == 1:
        logger.warning("Only one time/distance reading; pickup leg unknown")
        return TripEstimate(pickup=TimeDistance.zero(), trip=ranked[0].td)
    return TripEstimate(pickup=ranked[0].td, trip=ranked[-1].td)
