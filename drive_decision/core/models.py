"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/core/models.py
Description: Immutable value types passed between pipeline stages.

Every instance is created fresh for one analysis pass and discarded after the
report is rendered. Nothing here is shared across passes.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Rect:
    """Axis-aligned box in source-bitmap pixel coordinates (right/bottom exclusive)."""

    left: int
    top: int
    right: int
    bottom: int

    @classmethod
    def from_xywh(cls, x: int, y: int, w: int, h: int) -> "Rect":
        return cls(int(x), int(y), int(x + w), int(y + h))

    @property
    def width(self) -> int:
        return max(0, self.right - self.left)

    @property
    def height(self) -> int:
        return max(0, self.bottom - self.top)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2.0

    def union(self, other: "Rect") -> "Rect":
        return Rect(
            min(self.left, other.left),
            min(self.top, other.top),
            max(self.right, other.right),
            max(self.bottom, other.bottom),
        )

    def expanded(self, pad: int) -> "Rect":
        """Grow by `pad` on every side; the origin never goes negative."""
        return Rect(
            max(0, self.left - pad),
            max(0, self.top - pad),
            self.right + pad,
            self.bottom + pad,
        )

    def clamped(self, width: int, height: int) -> "Rect":
        return Rect(
            min(max(0, self.left), width),
            min(max(0, self.top), height),
            min(max(0, self.right), width),
            min(max(0, self.bottom), height),
        )

    def offset(self, dx: int, dy: int) -> "Rect":
        return Rect(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)

    def to_dict(self) -> Dict[str, int]:
        return {'left': self.left, 'top': self.top, 'right': self.right, 'bottom': self.bottom}


@dataclass(frozen=True)
class OcrLine:
    """One recognised line of text with its bounding box."""

    text: str
    rect: Rect


@dataclass(frozen=True)
class Token:
    """A recognised line that carried a duration, a distance, or both."""

    rect: Rect
    text: str
    seconds: Optional[int] = None
    meters: Optional[int] = None

    @property
    def kind(self) -> Optional[str]:
        if self.seconds is not None and self.meters is not None:
            return 'both'
        if self.seconds is not None:
            return 'time_only'
        if self.meters is not None:
            return 'dist_only'
        return None


@dataclass(frozen=True)
class TimeDistance:
    seconds: int
    meters: int

    @classmethod
    def zero(cls) -> "TimeDistance":
        return cls(0, 0)

    @property
    def is_zero(self) -> bool:
        return self.seconds == 0 and self.meters == 0

    @property
    def km(self) -> float:
        return self.meters / 1000.0

    def to_dict(self) -> Dict[str, int]:
        return {'seconds': self.seconds, 'meters': self.meters}


@dataclass(frozen=True)
class TdCandidate:
    """A finalized time-distance reading.

    `rect` is only used for deduplication and debug output.
    """

    rect: Rect
    td: TimeDistance
    provenance: str

    def to_dict(self) -> Dict[str, Any]:
        return {'rect': self.rect.to_dict(), 'td': self.td.to_dict(), 'provenance': self.provenance}


@dataclass(frozen=True)
class TripEstimate:
    """Pickup and trip legs. A zero pickup means only one reading was available."""

    pickup: TimeDistance
    trip: TimeDistance

    @property
    def total_seconds(self) -> int:
        return self.pickup.seconds + self.trip.seconds

    @property
    def total_meters(self) -> int:
        return self.pickup.meters + self.trip.meters

    @property
    def total_hours(self) -> float:
        return self.total_seconds / 3600.0

    @property
    def total_km(self) -> float:
        return self.total_meters / 1000.0

    @property
    def is_degraded(self) -> bool:
        return self.pickup.is_zero

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pickup': self.pickup.to_dict(),
            'trip': self.trip.to_dict(),
            'total_seconds': self.total_seconds,
            'total_meters': self.total_meters,
        }


class OfferLabel(Enum):
    PASSENGER = 'passenger'
    COUNTER = 'counter'


@dataclass(frozen=True)
class Offer:
    amount: Decimal
    label: OfferLabel

    @property
    def is_passenger(self) -> bool:
        return self.label is OfferLabel.PASSENGER

    def describe(self) -> str:
        if self.is_passenger:
            return "Passenger offer"
        return f"Counter {self.amount}"

    def to_dict(self) -> Dict[str, Any]:
        return {'amount': str(self.amount), 'label': self.label.value}


@dataclass(frozen=True)
class CostBreakdown:
    """Trip-wide variable costs; identical for every offer of the same trip."""

    total_hours: float
    total_km: float
    avg_speed_kmh: float
    km_per_l: float
    fuel_cost: float
    wear_cost: float

    @property
    def variable_cost(self) -> float:
        return self.fuel_cost + self.wear_cost

    def to_dict(self) -> Dict[str, float]:
        return {
            'total_hours': self.total_hours,
            'total_km': self.total_km,
            'avg_speed_kmh': self.avg_speed_kmh,
            'km_per_l': self.km_per_l,
            'fuel_cost': self.fuel_cost,
            'wear_cost': self.wear_cost,
            'variable_cost': self.variable_cost,
        }


@dataclass(frozen=True)
class OfferMetrics:
    offer: Offer
    gross: float
    net: float
    net_per_hour: float
    gross_per_km_trip: float
    passes: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'offer': self.offer.to_dict(),
            'gross': self.gross,
            'net': self.net,
            'net_per_hour': self.net_per_hour,
            'gross_per_km_trip': self.gross_per_km_trip,
            'passes': self.passes,
        }


@dataclass(frozen=True)
class Recommendation:
    """Final decision.

    Attributes:
        decision: 'accept' (passenger offer), 'counter' (cheapest passing
            counter) or 'minimum' (nothing passes; see required_gross).
        offer: The recommended offer, None for 'minimum'.
        required_gross: Smallest whole-unit price meeting the target. Only set
            for 'minimum'; None there when the fee makes the target unreachable.
    """

    decision: str
    offer: Optional[Offer]
    required_gross: Optional[int]
    min_net_per_hour: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'decision': self.decision,
            'offer': self.offer.to_dict() if self.offer else None,
            'required_gross': self.required_gross,
            'min_net_per_hour': self.min_net_per_hour,
            'message': self.message,
        }


@dataclass
class AnalysisResult:
    """Everything one analysis pass produced, plus the rendered report."""

    status: str
    report: str = ""
    estimate: Optional[TripEstimate] = None
    candidates: List[TdCandidate] = field(default_factory=list)
    offers: List[Offer] = field(default_factory=list)
    costs: Optional[CostBreakdown] = None
    metrics: List[OfferMetrics] = field(default_factory=list)
    recommendation: Optional[Recommendation] = None
    display: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == 'ok'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'report': self.report,
            'estimate': self.estimate.to_dict() if self.estimate else None,
            'candidates': [c.to_dict() for c in self.candidates],
            'offers': [o.to_dict() for o in self.offers],
            'costs': self.costs.to_dict() if self.costs else None,
            'metrics': [m.to_dict() for m in self.metrics],
            'recommendation': self.recommendation.to_dict() if self.recommendation else None,
            'display': list(self.display),
            'warnings': list(self.warnings),
            'error': self.error,
        }
