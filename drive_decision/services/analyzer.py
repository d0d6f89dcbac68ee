"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/analyzer.py
Description: Runs one analysis pass end to end, one pass at a time.
"""

import concurrent.futures
import logging
import threading
import time
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from drive_decision.core.config import SettingsSnapshot
from drive_decision.core.errors import AnalyzerBusyError, NoCandidatesError, RecognitionError, RecognitionTimeout
from drive_decision.core.models import AnalysisResult, OcrLine, Offer, Rect, TripEstimate

from .extraction import ExtractionResult, extract_trip
from .fare_calculator import compute_costs, evaluate_offers
from .image_utils import RawFrame, crop as crop_frame, to_bgr, validate_bgr
from .offer_parser import OfferParser, parse_dump_header
from .recognizer import TextRecognizer
from .recommendation import recommend
from .region_segmenter import RegionSegmenter
from .report import render_failure, render_report

logger = logging.getLogger(__name__)

Frame = Union[np.ndarray, RawFrame]

# Crop bounds smaller than this on either side are ignored.
_MIN_CROP_PX = 50


def read_with_retry(
    read: Callable[[], Optional[str]],
    attempts: int = 3,
    delays: Sequence[float] = (0.15, 0.3),
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[str]:
    """Call `read` until it returns text, at most `attempts` times.

    A read that returns None, or a dump whose header reports a missing root
    window, is retried after the next delay in `delays` (the last delay
    repeats). Returns None when every attempt failed.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(attempts):
        text = read()
        if text is not None and not parse_dump_header(text).root_missing:
            return text
        if attempt < attempts - 1:
            delay = delays[min(attempt, len(delays) - 1)] if delays else 0.0
            logger.debug("Accessibility read %d/%d empty; retrying in %.2fs", attempt + 1, attempts, delay)
            sleep(delay)
    logger.warning(f"Accessibility read failed after {attempts} attempt(s)")
    return None


class FareAnalyzer:
    """Single-flight fare decision pipeline.

    A request arriving while another is running is dropped with a "busy"
    result instead of being queued. Each pass allocates its own tokens,
    candidates and metrics; nothing is kept between passes.

    Attributes:
        recognizer: OCR engine used when a raw frame is supplied.
        segmenter: Colour-box locator used when a raw frame is supplied.
        offer_parser: Accessibility dump parser.
        target_package: Expected foreground app; a mismatch only adds a warning.
        executor: One-worker pool for submit().
    """

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        segmenter: Optional[RegionSegmenter] = None,
        offer_parser: Optional[OfferParser] = None,
        target_package: Optional[str] = None,
    ) -> None:
        self.recognizer = recognizer
        self.segmenter = segmenter if segmenter is not None else RegionSegmenter()
        self.offer_parser = offer_parser if offer_parser is not None else OfferParser()
        self.target_package = target_package
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="FareAnalyzer")
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def analyze(
        self,
        settings: SettingsSnapshot,
        accessibility_text: Optional[str] = None,
        ocr_lines: Optional[Sequence[OcrLine]] = None,
        frame: Optional[Frame] = None,
        crop: Optional[Rect] = None,
    ) -> AnalysisResult:
        """Run one pass and return its result; never raises for pipeline failures.

        Args:
            settings: Snapshot to use for this pass.
            accessibility_text: Accessibility dump with the offers.
            ocr_lines: Line-boxed OCR result. Preferred over `frame`.
            frame: BGR array or RawFrame, recognised when no lines are given.
            crop: Screen region (e.g. the map) to restrict recognition to.

        Raises:
            TypeError: If settings is not a SettingsSnapshot.
            ValueError: If the frame is malformed.
        """
        if not isinstance(settings, SettingsSnapshot):
            raise TypeError("settings must be a SettingsSnapshot")

        try:
            self._acquire()
        except AnalyzerBusyError as e:
            logger.info(f"Analysis dropped: {e}")
            return AnalysisResult(status='busy', report=render_failure(f"Busy: {e}"), error=str(e))
        start = time.perf_counter()
        try:
            return self._run(settings, accessibility_text, ocr_lines, frame, crop)
        finally:
            self._in_flight.release()
            logger.info("Analysis finished in %.0f ms", (time.perf_counter() - start) * 1000)

    def submit(self, settings: SettingsSnapshot, **inputs) -> concurrent.futures.Future:
        """Run analyze() on the worker thread."""
        return self.executor.submit(self.analyze, settings, **inputs)

    def analyze_live(
        self,
        settings: SettingsSnapshot,
        read_text: Callable[[], Optional[str]],
        capture_frame: Optional[Callable[[], Optional[Frame]]] = None,
        crop: Optional[Rect] = None,
    ) -> AnalysisResult:
        """Pull the dump and a frame from live collaborators, then analyze."""
        text = read_with_retry(read_text)
        frame = capture_frame() if capture_frame is not None else None
        return self.analyze(settings, accessibility_text=text, frame=frame, crop=crop)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    def _acquire(self) -> None:
        if not self._in_flight.acquire(blocking=False):
            raise AnalyzerBusyError("an analysis is already running")

    # --- pipeline stages ---

    def _parse_offers(self, text: Optional[str], warnings: List[str]) -> List[Offer]:
        if not text:
            warnings.append("No accessibility text; no offers to evaluate")
            return []
        header = parse_dump_header(text)
        if header.root_missing:
            warnings.append("Accessibility root window unavailable")
            return []
        if header.package and self.target_package and header.package != self.target_package:
            logger.warning(f"Foreground app is {header.package}, expected {self.target_package}")
            warnings.append(f"Foreground app is {header.package}")
        return self.offer_parser.parse(header.body)

    def _prepare_frame(self, frame: Frame, crop: Optional[Rect], warnings: List[str]) -> Tuple[np.ndarray, Tuple[int, int]]:
        bgr = to_bgr(frame) if isinstance(frame, RawFrame) else frame
        validate_bgr(bgr)
        if crop is None:
            return bgr, (0, 0)
        h, w = bgr.shape[:2]
        bounds = crop.clamped(w, h)
        if bounds.width < _MIN_CROP_PX or bounds.height < _MIN_CROP_PX:
            warnings.append("Crop bounds too small; used the full frame")
            return bgr, (0, 0)
        return crop_frame(bgr, bounds), (bounds.left, bounds.top)

    def _extract(
        self,
        ocr_lines: Optional[Sequence[OcrLine]],
        frame: Optional[Frame],
        crop: Optional[Rect],
        warnings: List[str],
    ) -> ExtractionResult:
        if ocr_lines is not None:
            return extract_trip(lines=ocr_lines)
        if frame is None:
            raise NoCandidatesError("No screen capture supplied")
        if self.recognizer is None:
            raise RecognitionError("No OCR engine configured")
        bgr, origin = self._prepare_frame(frame, crop, warnings)
        return extract_trip(frame=bgr, recognizer=self.recognizer, segmenter=self.segmenter, origin=origin)

    def _run(
        self,
        settings: SettingsSnapshot,
        accessibility_text: Optional[str],
        ocr_lines: Optional[Sequence[OcrLine]],
        frame: Optional[Frame],
        crop: Optional[Rect],
    ) -> AnalysisResult:
        warnings: List[str] = []
        offers = self._parse_offers(accessibility_text, warnings)

        extraction: Optional[ExtractionResult] = None
        try:
            extraction = self._extract(ocr_lines, frame, crop, warnings)
            warnings.extend(extraction.warnings)
            estimate: Optional[TripEstimate] = extraction.estimate
            if estimate is None:
                raise NoCandidatesError()
        except NoCandidatesError as e:
            logger.warning(f"No time/distance data: {e}")
            display = extraction.display if extraction else []
            return AnalysisResult(
                status='need_clearer_capture',
                report=render_failure(str(e), display, warnings),
                offers=offers,
                display=display,
                warnings=warnings,
                error=str(e),
            )
        except RecognitionError as e:
            kind = "timed out" if isinstance(e, RecognitionTimeout) else "failed"
            logger.error(f"Recognition {kind}: {e}")
            return AnalysisResult(
                status='recognition_failed',
                report=render_failure(f"OCR {kind}: {e}", warnings=warnings),
                offers=offers,
                warnings=warnings,
                error=str(e),
            )

        costs = compute_costs(estimate, settings)
        metrics = evaluate_offers(offers, estimate, settings, costs)
        recommendation = recommend(metrics, costs, settings)
        report = render_report(estimate, costs, metrics, recommendation, settings, extraction.display, warnings)

        status = 'ok' if offers else 'no_offers'
        logger.info(f"Analysis {status} via {extraction.strategy}: {recommendation.message}")
        return AnalysisResult(
            status=status,
            report=report,
            estimate=estimate,
            candidates=extraction.candidates,
            offers=offers,
            costs=costs,
            metrics=metrics,
            recommendation=recommendation,
            display=extraction.display,
            warnings=warnings,
        )
