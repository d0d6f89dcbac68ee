# tests/test_candidate_selector.py
"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: test_candidate_selector.py
Description: Tests for duplicate removal and pickup/trip selection.
"""

from drive_decision.core.models import Rect, TdCandidate, TimeDistance
from drive_decision.services.candidate_selector import deduplicate, rank, select_legs


def _cand(seconds: int, meters: int, rect: Rect, provenance: str = "test") -> TdCandidate:
    return TdCandidate(rect=rect, td=TimeDistance(seconds, meters), provenance=provenance)


def test_exact_duplicates_keep_the_smallest_box() -> None:
    large = _cand(600, 3000, Rect(0, 0, 400, 200), "large")
    small = _cand(600, 3000, Rect(1000, 1000, 1100, 1040), "small")

    kept = deduplicate([large, small])

    assert len(kept) == 1
    assert kept[0].provenance == "small"


def test_near_duplicates_are_dropped() -> None:
    first = _cand(600, 3000, Rect(100, 100, 300, 140))
    echo = _cand(660, 3020, Rect(110, 110, 310, 150))
    assert deduplicate([first, echo]) == [first]


def test_same_distance_far_away_is_kept() -> None:
    first = _cand(600, 3000, Rect(100, 100, 300, 140))
    other = _cand(660, 3020, Rect(100, 900, 300, 940))
    assert len(deduplicate([first, other])) == 2


def test_nearby_but_different_distance_is_kept() -> None:
    first = _cand(600, 3000, Rect(100, 100, 300, 140))
    other = _cand(600, 3500, Rect(100, 110, 300, 150))
    assert len(deduplicate([first, other])) == 2


def test_rank_sorts_by_distance() -> None:
    ranked = rank([
        _cand(720, 6000, Rect(0, 500, 100, 540)),
        _cand(300, 1200, Rect(0, 0, 100, 40)),
        _cand(500, 3000, Rect(0, 250, 100, 290)),
    ])
    assert [c.td.meters for c in ranked] == [1200, 3000, 6000]


def test_select_legs_empty_returns_none() -> None:
    assert select_legs([]) is None


def test_select_legs_single_candidate_is_trip_with_zero_pickup() -> None:
    estimate = select_legs([_cand(720, 6000, Rect(0, 0, 10, 10))])
    assert estimate.pickup == TimeDistance.zero()
    assert estimate.trip == TimeDistance(720, 6000)
    assert estimate.is_degraded


def test_select_legs_uses_shortest_and_longest() -> None:
    ranked = rank([
        _cand(720, 6000, Rect(0, 500, 100, 540)),
        _cand(300, 1200, Rect(0, 0, 100, 40)),
        _cand(500, 3000, Rect(0, 250, 100, 290)),
    ])
    estimate = select_legs(ranked)
    assert estimate.pickup == TimeDistance(300, 1200)
    assert estimate.trip == TimeDistance(720, 6000)
    assert estimate.total_seconds == 1020
    assert estimate.total_meters == 7200
    assert not estimate.is_degraded
