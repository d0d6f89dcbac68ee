# drive_decision/services/region_segmenter.py
"""
RegionSegmenter module – locates the blue and green time/distance boxes of the
offer screen by colour, so each box can be recognised on its own.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from drive_decision.core.errors import SegmentationFailure
from drive_decision.core.models import Rect

logger = logging.getLogger(__name__)

# Hue ranges in degrees (0-360). OpenCV stores hue as degrees / 2.
BLUE_HUE_DEG = (185.0, 255.0)
GREEN_HUE_DEG = (55.0, 150.0)


@dataclass(frozen=True)
class SegmentationResult:
    """Best box per colour in full-resolution coordinates (None when absent)."""
    blue: Optional[Rect]
    green: Optional[Rect]

    @property
    def missing(self) -> Tuple[str, ...]:
        return tuple(name for name, rect in (('blue', self.blue), ('green', self.green)) if rect is None)

    @property
    def ok(self) -> bool:
        return not self.missing


class RegionSegmenter:
    """
    Colour-box locator working on a downsampled copy of the frame.

    Pixels are classified as blue or green by hue, with saturation and value
    floors that reject washed-out background. Each colour mask is split into
    4-connected components and every component is scored by
    pixel_count * (pixel_count / rect_area), so solid filled boxes beat thin
    shapes such as a drawn route line.

    Attributes:
        step (int): Sampling stride in pixels.
        min_area (int): Minimum component bounding-box area at full scale (px²).
        aspect_range (Tuple[float, float]): Allowed width/height ratio.
        sat_floor (float): Minimum saturation in [0.0, 1.0].
        val_floor (float): Minimum value in [0.0, 1.0].
        padding (int): Margin added around the winning box at full scale.
    """

    def __init__(
        self,
        step: int = 4,
        min_area: int = 1200,
        aspect_range: Tuple[float, float] = (0.45, 3.0),
        sat_floor: float = 0.25,
        val_floor: float = 0.25,
        padding: int = 8,
    ) -> None:
        """
        Initialize the RegionSegmenter.

        Raises:
            ValueError: If any parameter is out of range.
        """
        if step < 1:
            raise ValueError(f"step must be >= 1, got {step}")
        if min_area < 1:
            raise ValueError(f"min_area must be >= 1, got {min_area}")
        if aspect_range[0] >= aspect_range[1]:
            raise ValueError(f"aspect_range min {aspect_range[0]} must be < max {aspect_range[1]}")
        for name, value in (('sat_floor', sat_floor), ('val_floor', val_floor)):
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
        if padding < 0:
            raise ValueError(f"padding must be >= 0, got {padding}")

        self.step = step
        self.min_area = min_area
        self.aspect_range = aspect_range
        self.sat_floor = sat_floor
        self.val_floor = val_floor
        self.padding = padding

    def color_masks(self, bgr_frame: np.ndarray) -> Dict[str, np.ndarray]:
        """Return boolean blue/green masks of the downsampled frame."""
        small = np.ascontiguousarray(bgr_frame[::self.step, ::self.step])
        hsv = cv2.cvtColor(small, cv2.COLOR_BGR2HSV)
        hue_deg = hsv[:, :, 0].astype(np.float32) * 2.0
        sat = hsv[:, :, 1].astype(np.float32) / 255.0
        val = hsv[:, :, 2].astype(np.float32) / 255.0

        vivid = (sat >= self.sat_floor) & (val >= self.val_floor)
        blue = vivid & (hue_deg >= BLUE_HUE_DEG[0]) & (hue_deg <= BLUE_HUE_DEG[1])
        green = vivid & (hue_deg >= GREEN_HUE_DEG[0]) & (hue_deg <= GREEN_HUE_DEG[1])
        return {'blue': blue, 'green': green}

    def best_component(self, mask: np.ndarray, frame_w: int, frame_h: int) -> Optional[Rect]:
        """Highest fill-score component of `mask`, scaled back to the full frame."""
        count, _, stats, _ = cv2.connectedComponentsWithStats(mask.astype(np.uint8), connectivity=4)
        scale_area = self.step * self.step
        best: Optional[Tuple[float, Rect]] = None

        # Label 0 is the background.
        for label in range(1, count):
            x, y, w, h, pixels = (int(v) for v in stats[label])
            rect_area = w * h
            if rect_area * scale_area < self.min_area:
                continue
            aspect = w / float(h)
            if not (self.aspect_range[0] <= aspect <= self.aspect_range[1]):
                continue
            score = pixels * (pixels / float(rect_area))
            if best is None or score > best[0]:
                best = (score, Rect(x * self.step, y * self.step, (x + w) * self.step, (y + h) * self.step))

        if best is None:
            return None
        return best[1].expanded(self.padding).clamped(frame_w, frame_h)

    def segment(self, bgr_frame: np.ndarray) -> SegmentationResult:
        """
        Locate the blue and green boxes.

        Args:
            bgr_frame: BGR image as a numpy uint8 array, shape (H, W, 3).

        Returns:
            SegmentationResult; check `.ok` or call require().

        Raises:
            ValueError: If bgr_frame is not a non-empty 3-channel array.
        """
        if bgr_frame is None or not isinstance(bgr_frame, np.ndarray):
            raise ValueError("bgr_frame must be a 3-channel BGR numpy array")
        if bgr_frame.ndim != 3 or bgr_frame.shape[2] != 3:
            raise ValueError("bgr_frame must be a 3-channel BGR numpy array")
        if bgr_frame.size == 0:
            raise ValueError("bgr_frame cannot be empty")

        frame_h, frame_w = bgr_frame.shape[:2]
        masks = self.color_masks(bgr_frame)
        result = SegmentationResult(
            blue=self.best_component(masks['blue'], frame_w, frame_h),
            green=self.best_component(masks['green'], frame_w, frame_h),
        )
        if result.ok:
            logger.debug("Segmented boxes blue=%s green=%s", result.blue, result.green)
        else:
            logger.warning("Segmentation missing: %s", ', '.join(result.missing))
        return result

    def require(self, bgr_frame: np.ndarray) -> SegmentationResult:
        """Like segment(), but raise SegmentationFailure unless both boxes were found."""
        result = self.segment(bgr_frame)
        if not result.ok:
            raise SegmentationFailure(result.missing)
        return result
