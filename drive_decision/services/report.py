"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/report.py
Description: Renders an analysis into the text shown in the overlay panel.
"""

from typing import List, Optional, Sequence

from drive_decision.core.config import SettingsSnapshot
from drive_decision.core.models import (
    CostBreakdown,
    OfferMetrics,
    Recommendation,
    TimeDistance,
    TripEstimate,
)

from .quantity_parser import format_distance, format_duration


def _td_line(label: str, td: Optional[TimeDistance]) -> str:
    if td is None or td.is_zero:
        return f"{label}: ?"
    return f"{label}: {format_duration(td.seconds)} | {format_distance(td.meters)}"


def render_report(
    estimate: Optional[TripEstimate],
    costs: Optional[CostBreakdown],
    metrics: Sequence[OfferMetrics],
    recommendation: Optional[Recommendation],
    settings: SettingsSnapshot,
    display: Sequence[str] = (),
    warnings: Sequence[str] = (),
) -> str:
    lines: List[str] = ["=== DRIVE DECISION ==="]

    if estimate is not None:
        lines.append(_td_line("PICKUP", estimate.pickup))
        lines.append(_td_line("TRIP", estimate.trip))
        lines.append(
            f"TOTAL: {format_duration(estimate.total_seconds)} | {format_distance(estimate.total_meters)}"
        )
    lines.extend(display)

    if costs is not None:
        lines.append(
            f"Avg speed {costs.avg_speed_kmh:.1f} km/h -> {costs.km_per_l:.1f} km/L"
        )
        lines.append(
            f"Cost: fuel {costs.fuel_cost:.2f} + wear {costs.wear_cost:.2f} = {costs.variable_cost:.2f}"
        )
    lines.append(f"Target: {settings.min_net_per_hour:.0f}/h net"
                 + (f" (fee {settings.fee_pct:.0f}%)" if settings.fee_pct > 0 else ""))

    if metrics:
        lines.append("")
    for m in metrics:
        marker = "OK" if m.passes else "X "
        lines.append(
            f"[{marker}] {m.offer.describe()}: gross {m.gross:.2f} | net {m.net:.2f} | "
            f"{m.net_per_hour:.0f}/h | {m.gross_per_km_trip:.2f}/km trip"
        )

    if recommendation is not None:
        lines.append("")
        lines.append(f">> {recommendation.message}")

    for warning in warnings:
        lines.append(f"! {warning}")
    return "\n".join(lines)


def render_failure(message: str, display: Sequence[str] = (), warnings: Sequence[str] = ()) -> str:
    lines = ["=== DRIVE DECISION ===", message]
    lines.extend(display)
    lines.extend(f"! {w}" for w in warnings)
    return "\n".join(lines)
