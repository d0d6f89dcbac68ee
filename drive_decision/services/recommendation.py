"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/recommendation.py
Description: Picks the offer to take, or the minimum price worth asking for.
"""

import math
from typing import Optional, Sequence

from drive_decision.core.config import SettingsSnapshot
from drive_decision.core.models import CostBreakdown, OfferMetrics, Recommendation

from .fare_calculator import fee_factor


def required_gross(costs: CostBreakdown, settings: SettingsSnapshot) -> Optional[int]:
    """Smallest whole-unit price whose net per hour meets the target.

    Returns None when the platform fee takes the whole gross.
    """
    keep = fee_factor(settings)
    if keep <= 0:
        return None
    needed = (costs.variable_cost + settings.min_net_per_hour * costs.total_hours) / keep
    # Absorb float noise so an exact 70.0 does not round up to 71.
    return int(math.ceil(round(needed, 6)))


def recommend(
    metrics: Sequence[OfferMetrics],
    costs: CostBreakdown,
    settings: SettingsSnapshot,
) -> Recommendation:
    """Decide on one offer. Pure and deterministic.

    Order: the passenger offer if it clears the target; otherwise the cheapest
    counteroffer that clears it; otherwise the minimum acceptable price.
    """
    target = settings.min_net_per_hour

    for m in metrics:
        if m.offer.is_passenger and m.passes:
            return Recommendation(
                decision='accept',
                offer=m.offer,
                required_gross=None,
                min_net_per_hour=target,
                message=f"ACCEPT {m.offer.amount} ({m.net_per_hour:.0f}/h net)",
            )

    passing = [m for m in metrics if not m.offer.is_passenger and m.passes]
    if passing:
        best = min(passing, key=lambda m: m.offer.amount)
        return Recommendation(
            decision='counter',
            offer=best.offer,
            required_gross=None,
            min_net_per_hour=target,
            message=f"OFFER {best.offer.amount} ({best.net_per_hour:.0f}/h net)",
        )

    minimum = required_gross(costs, settings)
    if minimum is None:
        message = "No price reaches the target with the current fee"
    else:
        message = f"No offer reaches {target:.0f}/h. Minimum: {minimum}"
    return Recommendation(
        decision='minimum',
        offer=None,
        required_gross=minimum,
        min_net_per_hour=target,
        message=message,
    )
