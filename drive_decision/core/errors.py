"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/core/errors.py
Description: Exception hierarchy for the fare decision pipeline.

A quantity or offer that fails to parse is not an error: parsers return None.
Everything here is recoverable; the analyzer turns each one into an
explanatory report rather than letting it reach the caller.
"""

from typing import Sequence


class FareDecisionError(Exception):
    """Base exception for fare decision failures."""
    pass


class NoCandidatesError(FareDecisionError):
    """Raised when no time-distance candidate survives building and dedup."""

    def __init__(self, message: str = "No time/distance reading found; need a clearer capture") -> None:
        super().__init__(message)


class SegmentationFailure(FareDecisionError):
    """Raised when the colour boxes cannot both be located in a frame.

    Attributes:
        missing: Colour names ("blue", "green") with no qualifying component.
    """

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"No qualifying region for: {', '.join(self.missing)}")


class RecognitionError(FareDecisionError):
    """Base exception for OCR engine problems."""
    pass


class RecognitionTimeout(RecognitionError):
    """Raised when the OCR engine does not answer within the time budget."""
    pass


class RecognitionEngineError(RecognitionError):
    """Raised when the OCR engine fails or is not installed."""
    pass


class AnalyzerBusyError(FareDecisionError):
    """Raised when an analysis is requested while another is in flight."""
    pass
