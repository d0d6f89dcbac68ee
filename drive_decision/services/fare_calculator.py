"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/fare_calculator.py
Description: Variable trip cost and per-offer earnings metrics.
"""

import logging
from typing import List, Optional, Sequence

from drive_decision.core.config import SettingsSnapshot
from drive_decision.core.models import CostBreakdown, Offer, OfferMetrics, TripEstimate

logger = logging.getLogger(__name__)

# Fuel-efficiency speed ramp: city figure at or below the low speed, highway
# figure at or above the high speed, linear in between.
RAMP_LOW_KMH = 25.0
RAMP_HIGH_KMH = 55.0


def effective_km_per_l(avg_speed_kmh: float, settings: SettingsSnapshot) -> float:
    city = max(1.0, settings.city_km_per_l)
    hwy = max(1.0, settings.hwy_km_per_l)
    if avg_speed_kmh != avg_speed_kmh or avg_speed_kmh <= RAMP_LOW_KMH:
        return city
    if avg_speed_kmh >= RAMP_HIGH_KMH:
        return hwy
    t = (avg_speed_kmh - RAMP_LOW_KMH) / (RAMP_HIGH_KMH - RAMP_LOW_KMH)
    return city + (hwy - city) * t


def compute_costs(estimate: TripEstimate, settings: SettingsSnapshot) -> CostBreakdown:
    """Fuel and wear cost of driving both legs."""
    total_hours = estimate.total_hours
    total_km = estimate.total_km
    avg_speed = total_km / total_hours if total_hours > 0 else 0.0
    km_per_l = effective_km_per_l(avg_speed, settings)

    costs = CostBreakdown(
        total_hours=total_hours,
        total_km=total_km,
        avg_speed_kmh=avg_speed,
        km_per_l=km_per_l,
        fuel_cost=(total_km / km_per_l) * settings.fuel_price,
        wear_cost=total_km * settings.other_cost_per_km,
    )
    logger.debug(
        "Costs: %.2f km in %.2f h (%.1f km/h, %.2f km/L) -> variable %.2f",
        total_km, total_hours, avg_speed, km_per_l, costs.variable_cost,
    )
    return costs


def fee_factor(settings: SettingsSnapshot) -> float:
    """Share of the gross the driver keeps after the platform fee."""
    return 1.0 - min(100.0, max(0.0, settings.fee_pct)) / 100.0


def offer_metrics(
    offer: Offer,
    estimate: TripEstimate,
    costs: CostBreakdown,
    settings: SettingsSnapshot,
) -> OfferMetrics:
    gross = float(offer.amount)
    net = gross * fee_factor(settings) - costs.variable_cost
    net_per_hour = net / costs.total_hours if costs.total_hours > 0 else 0.0
    trip_km = estimate.trip.km
    gross_per_km = gross / trip_km if trip_km > 0 else 0.0
    return OfferMetrics(
        offer=offer,
        gross=gross,
        net=net,
        net_per_hour=net_per_hour,
        gross_per_km_trip=gross_per_km,
        passes=net_per_hour >= settings.min_net_per_hour,
    )


def evaluate_offers(
    offers: Sequence[Offer],
    estimate: TripEstimate,
    settings: SettingsSnapshot,
    costs: Optional[CostBreakdown] = None,
) -> List[OfferMetrics]:
    """Metrics for every offer, in the order given.

    `costs` defaults to compute_costs(estimate, settings).
    """
    if costs is None:
        costs = compute_costs(estimate, settings)
    return [offer_metrics(offer, estimate, costs, settings) for offer in offers]
