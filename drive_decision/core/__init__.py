"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/core/__init__.py
Description: Value types, configuration and error taxonomy shared by the services.
"""

from .config import AppConfig, SettingsSnapshot
from .errors import (
    AnalyzerBusyError,
    FareDecisionError,
    NoCandidatesError,
    RecognitionEngineError,
    RecognitionError,
    RecognitionTimeout,
    SegmentationFailure,
)
from .models import (
    AnalysisResult,
    CostBreakdown,
    Offer,
    OfferLabel,
    OfferMetrics,
    OcrLine,
    Recommendation,
    Rect,
    TdCandidate,
    TimeDistance,
    Token,
    TripEstimate,
)

__all__ = [
    'AppConfig',
    'SettingsSnapshot',
    'AnalyzerBusyError',
    'FareDecisionError',
    'NoCandidatesError',
    'RecognitionEngineError',
    'RecognitionError',
    'RecognitionTimeout',
    'SegmentationFailure',
    'AnalysisResult',
    'CostBreakdown',
    'Offer',
    'OfferLabel',
    'OfferMetrics',
    'OcrLine',
    'Recommendation',
    'Rect',
    'TdCandidate',
    'TimeDistance',
    'Token',
    'TripEstimate',
]
