# tests/test_analyzer.py
"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: test_analyzer.py
Description: End-to-end tests for FareAnalyzer, including the single-flight guard.
"""

import math
import threading
from decimal import Decimal
from typing import List
from unittest.mock import MagicMock

import numpy as np
import pytest

from drive_decision.core.config import SettingsSnapshot
from drive_decision.core.errors import RecognitionEngineError, RecognitionTimeout
from drive_decision.core.models import OcrLine, Rect
from drive_decision.services.analyzer import FareAnalyzer, read_with_retry
from drive_decision.services.image_utils import RawFrame
from drive_decision.services.recognizer import TextRecognizer


class FixedRecognizer(TextRecognizer):
    def __init__(self, lines: List[OcrLine]) -> None:
        self.lines = lines
        self.frames: List[np.ndarray] = []

    def recognize_lines(self, bgr_frame: np.ndarray) -> List[OcrLine]:
        self.frames.append(bgr_frame)
        return list(self.lines)


class BlockingRecognizer(FixedRecognizer):
    """Holds the pipeline inside recognition until released."""

    def __init__(self, lines: List[OcrLine]) -> None:
        super().__init__(lines)
        self.entered = threading.Event()
        self.release = threading.Event()

    def recognize_lines(self, bgr_frame: np.ndarray) -> List[OcrLine]:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().recognize_lines(bgr_frame)


class FailingRecognizer(TextRecognizer):
    def __init__(self, error: Exception) -> None:
        self.error = error

    def recognize_lines(self, bgr_frame: np.ndarray) -> List[OcrLine]:
        raise self.error


@pytest.fixture
def analyzer() -> FareAnalyzer:
    fa = FareAnalyzer(target_package="sinet.startup.inDriver")
    yield fa
    fa.shutdown()


@pytest.fixture
def white_frame() -> np.ndarray:
    return np.full((400, 400, 3), 255, dtype=np.uint8)


# -----------------------------------------------------------------------------
# Full pipeline
# -----------------------------------------------------------------------------

def test_passenger_offer_is_accepted(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                                     offer_dump: str, trip_lines: List[OcrLine]) -> None:
    result = analyzer.analyze(default_settings, accessibility_text=offer_dump, ocr_lines=trip_lines)

    assert result.status == 'ok'
    assert result.ok
    assert result.estimate.total_seconds == 1020
    assert result.estimate.total_meters == 7200
    assert result.costs.variable_cost == pytest.approx(17.19, abs=0.1)
    assert [str(o.amount) for o in result.offers] == ["70", "55", "62"]
    assert result.recommendation.decision == 'accept'
    assert result.recommendation.offer.amount == Decimal("70")
    assert 180 < result.metrics[0].net_per_hour < 190
    assert "ACCEPT 70" in result.report
    assert result.report.startswith("=== DRIVE DECISION ===")
    assert result.warnings == []


def test_result_serializes(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                           offer_dump: str, trip_lines: List[OcrLine]) -> None:
    data = analyzer.analyze(default_settings, accessibility_text=offer_dump, ocr_lines=trip_lines).to_dict()
    assert data['status'] == 'ok'
    assert data['recommendation']['offer'] == {'amount': '70', 'label': 'passenger'}
    assert data['estimate']['total_meters'] == 7200


def test_higher_target_recommends_minimum(analyzer: FareAnalyzer, offer_dump: str,
                                          trip_lines: List[OcrLine]) -> None:
    settings = SettingsSnapshot(min_net_per_hour=300)
    result = analyzer.analyze(settings, accessibility_text=offer_dump, ocr_lines=trip_lines)

    expected = math.ceil(result.costs.variable_cost + 300 * result.costs.total_hours)
    assert result.status == 'ok'
    assert result.recommendation.decision == 'minimum'
    assert result.recommendation.required_gross == expected
    assert f"Minimum: {expected}" in result.report


def test_other_foreground_app_only_warns(default_settings: SettingsSnapshot, offer_dump: str,
                                         trip_lines: List[OcrLine]) -> None:
    analyzer = FareAnalyzer(target_package="com.example.other")
    result = analyzer.analyze(default_settings, accessibility_text=offer_dump, ocr_lines=trip_lines)

    assert result.status == 'ok'
    assert any("sinet.startup.inDriver" in w for w in result.warnings)
    analyzer.shutdown()


def test_no_offers_still_reports_minimum(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                                         trip_lines: List[OcrLine]) -> None:
    result = analyzer.analyze(default_settings, ocr_lines=trip_lines)

    assert result.status == 'no_offers'
    assert result.offers == []
    assert result.recommendation.decision == 'minimum'
    assert result.recommendation.required_gross == 43


def test_missing_root_window_counts_as_no_offers(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                                                 trip_lines: List[OcrLine]) -> None:
    result = analyzer.analyze(default_settings, accessibility_text="APP_AL_FRENTE: (sin rootInActiveWindow)",
                              ocr_lines=trip_lines)
    assert result.status == 'no_offers'
    assert any("root window" in w for w in result.warnings)


# -----------------------------------------------------------------------------
# Failure paths
# -----------------------------------------------------------------------------

def test_no_readings_asks_for_clearer_capture(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                                              offer_dump: str) -> None:
    lines = [OcrLine("Aceptar por MXN70", Rect(0, 0, 200, 30))]
    result = analyzer.analyze(default_settings, accessibility_text=offer_dump, ocr_lines=lines)

    assert result.status == 'need_clearer_capture'
    assert result.estimate is None
    assert result.recommendation is None
    assert len(result.offers) == 3
    assert "clearer capture" in result.report


def test_no_capture_at_all(analyzer: FareAnalyzer, default_settings: SettingsSnapshot, offer_dump: str) -> None:
    result = analyzer.analyze(default_settings, accessibility_text=offer_dump)
    assert result.status == 'need_clearer_capture'
    assert result.error == "No screen capture supplied"


def test_frame_without_engine_is_recognition_failure(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                                                     white_frame: np.ndarray) -> None:
    result = analyzer.analyze(default_settings, frame=white_frame)
    assert result.status == 'recognition_failed'


@pytest.mark.parametrize("error, wording", [
    (RecognitionTimeout("OCR exceeded 1.5s"), "timed out"),
    (RecognitionEngineError("Tesseract not installed"), "failed"),
])
def test_engine_errors_become_results(default_settings: SettingsSnapshot, white_frame: np.ndarray,
                                      error: Exception, wording: str) -> None:
    analyzer = FareAnalyzer(recognizer=FailingRecognizer(error))
    result = analyzer.analyze(default_settings, frame=white_frame)

    assert result.status == 'recognition_failed'
    assert wording in result.report
    assert result.error == str(error)
    assert not analyzer.busy
    analyzer.shutdown()


def test_settings_must_be_a_snapshot(analyzer: FareAnalyzer, trip_lines: List[OcrLine]) -> None:
    with pytest.raises(TypeError):
        analyzer.analyze({"fuel_price": 24}, ocr_lines=trip_lines)


def test_malformed_frame_propagates(default_settings: SettingsSnapshot, trip_lines: List[OcrLine]) -> None:
    analyzer = FareAnalyzer(recognizer=FixedRecognizer(trip_lines))
    with pytest.raises(ValueError):
        analyzer.analyze(default_settings, frame=np.zeros((10, 10), dtype=np.uint8))
    assert not analyzer.busy
    analyzer.shutdown()


# -----------------------------------------------------------------------------
# Frames and crops
# -----------------------------------------------------------------------------

def test_crop_restricts_recognition(default_settings: SettingsSnapshot, white_frame: np.ndarray,
                                    trip_lines: List[OcrLine]) -> None:
    recognizer = FixedRecognizer(trip_lines)
    analyzer = FareAnalyzer(recognizer=recognizer)
    result = analyzer.analyze(default_settings, frame=white_frame, crop=Rect(0, 100, 200, 300))

    assert recognizer.frames[0].shape == (200, 200, 3)
    shortest = min(result.candidates, key=lambda c: c.td.meters)
    assert shortest.rect == trip_lines[0].rect.offset(0, 100).expanded(12)
    analyzer.shutdown()


def test_tiny_crop_is_ignored(default_settings: SettingsSnapshot, white_frame: np.ndarray,
                              trip_lines: List[OcrLine]) -> None:
    recognizer = FixedRecognizer(trip_lines)
    analyzer = FareAnalyzer(recognizer=recognizer)
    result = analyzer.analyze(default_settings, frame=white_frame, crop=Rect(0, 0, 20, 20))

    assert recognizer.frames[0].shape == (400, 400, 3)
    assert any("Crop bounds too small" in w for w in result.warnings)
    analyzer.shutdown()


def test_raw_frame_is_decoded(default_settings: SettingsSnapshot, trip_lines: List[OcrLine]) -> None:
    recognizer = FixedRecognizer(trip_lines)
    analyzer = FareAnalyzer(recognizer=recognizer)
    raw = RawFrame(data=b"\xff" * (64 * 64 * 4), width=64, height=64, row_stride=256)
    result = analyzer.analyze(default_settings, frame=raw)

    assert result.status == 'no_offers'
    assert recognizer.frames[0].shape == (64, 64, 3)
    analyzer.shutdown()


# -----------------------------------------------------------------------------
# Concurrency
# -----------------------------------------------------------------------------

def test_second_request_while_running_is_busy(default_settings: SettingsSnapshot, white_frame: np.ndarray,
                                              trip_lines: List[OcrLine]) -> None:
    recognizer = BlockingRecognizer(trip_lines)
    analyzer = FareAnalyzer(recognizer=recognizer)
    try:
        future = analyzer.submit(default_settings, frame=white_frame)
        assert recognizer.entered.wait(timeout=5)
        assert analyzer.busy

        second = analyzer.analyze(default_settings, ocr_lines=trip_lines)
        assert second.status == 'busy'
        assert "Busy" in second.report

        recognizer.release.set()
        first = future.result(timeout=5)
        assert first.status == 'no_offers'
        assert not analyzer.busy
    finally:
        recognizer.release.set()
        analyzer.shutdown()


def test_sequential_requests_are_independent(analyzer: FareAnalyzer, default_settings: SettingsSnapshot,
                                             offer_dump: str, trip_lines: List[OcrLine]) -> None:
    first = analyzer.analyze(default_settings, accessibility_text=offer_dump, ocr_lines=trip_lines)
    second = analyzer.analyze(default_settings, ocr_lines=trip_lines[1:])

    assert first.status == 'ok'
    assert second.status == 'no_offers'
    assert second.estimate.is_degraded
    assert len(first.candidates) == 2


# -----------------------------------------------------------------------------
# Live collaborators
# -----------------------------------------------------------------------------

def test_read_with_retry_returns_first_success() -> None:
    read = MagicMock(side_effect=[None, "APP_AL_FRENTE: (sin rootInActiveWindow)", "MXN55"])
    sleep = MagicMock()

    assert read_with_retry(read, sleep=sleep) == "MXN55"
    assert read.call_count == 3
    assert [c.args[0] for c in sleep.call_args_list] == [0.15, 0.3]


def test_read_with_retry_gives_up() -> None:
    read = MagicMock(return_value=None)
    sleep = MagicMock()

    assert read_with_retry(read, attempts=4, sleep=sleep) is None
    assert read.call_count == 4
    assert [c.args[0] for c in sleep.call_args_list] == [0.15, 0.3, 0.3]


def test_read_with_retry_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        read_with_retry(lambda: "x", attempts=0)


def test_analyze_live(default_settings: SettingsSnapshot, offer_dump: str, white_frame: np.ndarray,
                      trip_lines: List[OcrLine]) -> None:
    analyzer = FareAnalyzer(recognizer=FixedRecognizer(trip_lines))
    result = analyzer.analyze_live(default_settings, read_text=lambda: offer_dump,
                                   capture_frame=lambda: white_frame)

    assert result.status == 'ok'
    assert result.recommendation.decision == 'accept'
    analyzer.shutdown()
