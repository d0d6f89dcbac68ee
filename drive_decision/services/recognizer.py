"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/recognizer.py
Description: OCR engine adapter producing line-boxed text from BGR frames.
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, List, Tuple

import cv2
import numpy as np
import pytesseract

from drive_decision.core.errors import RecognitionEngineError, RecognitionTimeout
from drive_decision.core.models import OcrLine, Rect

from .image_utils import validate_bgr

logger = logging.getLogger(__name__)

# Crops narrower than this are upscaled before recognition.
_MIN_OCR_WIDTH = 400


class TextRecognizer(ABC):
    """Contract for the external OCR capability.

    Implementations must give up after their time budget and raise
    RecognitionTimeout rather than hang.
    """

    @abstractmethod
    def recognize_lines(self, bgr_frame: np.ndarray) -> List[OcrLine]:
        """Recognise text lines with boxes in `bgr_frame` pixel coordinates.

        Raises:
            RecognitionTimeout: If the engine exceeds its time budget.
            RecognitionEngineError: If the engine fails or is unavailable.
        """
        pass

    def recognize_text(self, bgr_frame: np.ndarray) -> str:
        """Plain text of all recognised lines, one per row."""
        return "\n".join(line.text for line in self.recognize_lines(bgr_frame))


class TesseractRecognizer(TextRecognizer):
    """Tesseract via pytesseract, with a hard per-call timeout.

    Attributes:
        timeout_s: Seconds before tesseract is killed.
        lang: Tesseract language code(s), e.g. 'eng+spa'.
        config: Extra tesseract CLI flags.
        min_confidence: Words below this confidence (0-100) are dropped.
    """

    def __init__(
        self,
        timeout_s: float = 1.5,
        lang: str = 'eng+spa',
        config: str = '--oem 1 --psm 11',
        min_confidence: float = 30.0,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")
        if not 0.0 <= min_confidence <= 100.0:
            raise ValueError(f"min_confidence must be 0-100, got {min_confidence}")

        self.timeout_s = timeout_s
        self.lang = lang
        self.config = config
        self.min_confidence = min_confidence

    def _preprocess(self, bgr_frame: np.ndarray) -> Tuple[np.ndarray, float]:
        gray = cv2.cvtColor(bgr_frame, cv2.COLOR_BGR2GRAY)
        w = gray.shape[1]
        if 0 < w < _MIN_OCR_WIDTH:
            scale = _MIN_OCR_WIDTH / float(w)
            gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)
            return gray, scale
        return gray, 1.0

    def _run_engine(self, image: np.ndarray) -> Dict[str, list]:
        try:
            return pytesseract.image_to_data(
                image,
                lang=self.lang,
                config=self.config,
                output_type=pytesseract.Output.DICT,
                timeout=self.timeout_s,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionEngineError(f"Tesseract not installed: {e}")
        except pytesseract.TesseractError as e:
            raise RecognitionEngineError(f"Tesseract failed: {e}")
        except RuntimeError as e:
            # pytesseract signals its timeout with a bare RuntimeError
            if 'timeout' in str(e).lower():
                raise RecognitionTimeout(f"OCR exceeded {self.timeout_s:.1f}s")
            raise RecognitionEngineError(str(e))

    def recognize_lines(self, bgr_frame: np.ndarray) -> List[OcrLine]:
        validate_bgr(bgr_frame)
        image, scale = self._preprocess(bgr_frame)
        data = self._run_engine(image)

        grouped: "OrderedDict[Tuple[int, int, int], List[int]]" = OrderedDict()
        for i, word in enumerate(data.get('text', [])):
            if not word or not word.strip():
                continue
            try:
                conf = float(data['conf'][i])
            except (TypeError, ValueError):
                continue
            if conf < self.min_confidence:
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            grouped.setdefault(key, []).append(i)

        lines: List[OcrLine] = []
        for indices in grouped.values():
            indices.sort(key=lambda i: data['word_num'][i])
            text = ' '.join(data['text'][i].strip() for i in indices)
            rect = None
            for i in indices:
                word_rect = Rect.from_xywh(
                    data['left'][i] / scale,
                    data['top'][i] / scale,
                    data['width'][i] / scale,
                    data['height'][i] / scale,
                )
                rect = word_rect if rect is None else rect.union(word_rect)
            lines.append(OcrLine(text=text, rect=rect))

        logger.debug("Tesseract returned %d line(s)", len(lines))
        return lines
