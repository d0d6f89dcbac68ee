"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/extraction.py
Description: Time-distance extraction strategies, selected by which inputs are available.

- LineTokenStrategy: line-boxed OCR result already supplied by the caller.
- ColorBoxStrategy: raw frame; locate the blue/green boxes and recognise each.
- FrameLineStrategy: raw frame; recognise the whole frame into lines, then
  proceed as LineTokenStrategy. Used when colour segmentation fails.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from drive_decision.core.errors import SegmentationFailure
from drive_decision.core.models import OcrLine, TdCandidate, TimeDistance, TripEstimate

from .candidate_builder import build_candidates, is_plausible, tokenize
from .candidate_selector import rank, select_legs
from .image_utils import crop
from .quantity_parser import format_distance, format_duration, parse_meters, parse_seconds
from .recognizer import TextRecognizer
from .region_segmenter import RegionSegmenter
from .text_normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    strategy: str
    estimate: Optional[TripEstimate] = None
    candidates: List[TdCandidate] = field(default_factory=list)
    display: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class TdExtractionStrategy(ABC):
    """One way of getting pickup/trip readings out of the captured screen."""

    name: str = 'abstract'

    @abstractmethod
    def extract(self) -> ExtractionResult:
        """Run the strategy.

        Raises:
            SegmentationFailure: ColorBoxStrategy only, when a box is missing.
            RecognitionError: When the OCR engine times out or fails.
        """
        pass


class LineTokenStrategy(TdExtractionStrategy):
    name = 'line_tokens'

    def __init__(self, lines: Sequence[OcrLine]) -> None:
        self.lines = list(lines)

    def extract(self) -> ExtractionResult:
        candidates = rank(build_candidates(tokenize(self.lines)))
        estimate = select_legs(candidates)
        display = [
            f"#{i + 1}: {format_duration(c.td.seconds)} | {format_distance(c.td.meters)}"
            for i, c in enumerate(candidates)
        ] if len(candidates) > 2 else []
        warnings = []
        if estimate is not None and estimate.is_degraded:
            warnings.append("Single reading: pickup leg unknown, totals use the trip only")
        return ExtractionResult(
            strategy=self.name,
            estimate=estimate,
            candidates=candidates,
            display=display,
            warnings=warnings,
        )


class FrameLineStrategy(TdExtractionStrategy):
    """Whole-frame recognition.

    `origin` is the frame's top-left corner in screen coordinates when the
    frame is a crop, so candidate boxes are reported in screen space.
    """

    name = 'frame_lines'

    def __init__(self, frame: np.ndarray, recognizer: TextRecognizer, origin: Tuple[int, int] = (0, 0)) -> None:
        self.frame = frame
        self.recognizer = recognizer
        self.origin = origin

    def extract(self) -> ExtractionResult:
        dx, dy = self.origin
        lines = [
            OcrLine(text=line.text, rect=line.rect.offset(dx, dy))
            for line in self.recognizer.recognize_lines(self.frame)
        ]
        result = LineTokenStrategy(lines).extract()
        result.strategy = self.name
        return result


class ColorBoxStrategy(TdExtractionStrategy):
    """Recognise the blue and green boxes independently.

    Produces one "time | distance" display line per box. The readings are not
    merged into the line-token candidate list; when both boxes parse fully
    they form the estimate directly, shorter distance as pickup.
    """

    name = 'color_boxes'

    def __init__(self, frame: np.ndarray, recognizer: TextRecognizer, segmenter: RegionSegmenter) -> None:
        self.frame = frame
        self.recognizer = recognizer
        self.segmenter = segmenter

    def extract(self) -> ExtractionResult:
        boxes = self.segmenter.require(self.frame)
        readings: List[TimeDistance] = []
        display: List[str] = []

        for color, rect in (('BLUE', boxes.blue), ('GREEN', boxes.green)):
            text = normalize(self.recognizer.recognize_text(crop(self.frame, rect)))
            seconds = parse_seconds(text)
            meters = parse_meters(text)
            display.append(f"{color}: {format_duration(seconds)} | {format_distance(meters)}")
            if is_plausible(seconds, meters, f"{color.lower()} box"):
                readings.append(TimeDistance(seconds=seconds, meters=meters))

        estimate = None
        if len(readings) == 2:
            readings.sort(key=lambda td: td.meters)
            estimate = TripEstimate(pickup=readings[0], trip=readings[1])
        return ExtractionResult(strategy=self.name, estimate=estimate, display=display)


def extract_trip(
    lines: Optional[Sequence[OcrLine]] = None,
    frame: Optional[np.ndarray] = None,
    recognizer: Optional[TextRecognizer] = None,
    segmenter: Optional[RegionSegmenter] = None,
    origin: Tuple[int, int] = (0, 0),
) -> ExtractionResult:
    """Run the strategy that fits the inputs.

    Supplied OCR lines win. With only a frame, the colour boxes are tried
    first and whole-frame recognition is the fallback when segmentation fails
    or the boxes do not yield both legs.

    Raises:
        ValueError: If neither lines nor a frame (with a recognizer) is given.
        RecognitionError: Propagated from the OCR engine.
    """
    if lines is not None:
        return LineTokenStrategy(lines).extract()

    if frame is None or recognizer is None:
        raise ValueError("extract_trip needs OCR lines, or a frame and a recognizer")

    boxes_result: Optional[ExtractionResult] = None
    warnings: List[str] = []
    if segmenter is not None:
        try:
            boxes_result = ColorBoxStrategy(frame, recognizer, segmenter).extract()
            if boxes_result.estimate is not None:
                return boxes_result
            warnings.append("Colour boxes unreadable; used whole-frame recognition")
        except SegmentationFailure as e:
            logger.warning(f"Segmentation failed ({e}); falling back to whole-frame recognition")
            warnings.append("Colour boxes not found; used whole-frame recognition")

    result = FrameLineStrategy(frame, recognizer, origin=origin).extract()
    if boxes_result is not None:
        result.display = boxes_result.display + result.display
    result.warnings = warnings + result.warnings
    return result
