# drive_decision/services/image_utils.py

"""Image utilities: raw screen buffers to BGR, cropping."""
import logging
from dataclasses import dataclass
from typing import Union

import cv2
import numpy as np

from drive_decision.core.models import Rect

logger = logging.getLogger(__name__)

PIXEL_FORMATS = ('rgba', 'i420', 'nv12', 'nv21')

_YUV_CODES = {
    'i420': cv2.COLOR_YUV2BGR_I420,
    'nv12': cv2.COLOR_YUV2BGR_NV12,
    'nv21': cv2.COLOR_YUV2BGR_NV21,
}


@dataclass(frozen=True)
class RawFrame:
    """A captured screen buffer as handed over by the capture service.

    Attributes:
        data: Packed pixel bytes.
        width: Image width in pixels.
        height: Image height in pixels.
        row_stride: Bytes per row of the first plane; rows may be padded
            beyond width * bytes_per_pixel.
        pixel_format: One of PIXEL_FORMATS.
    """
    data: Union[bytes, bytearray, memoryview]
    width: int
    height: int
    row_stride: int
    pixel_format: str = 'rgba'


def _unpad_rows(buf: np.ndarray, rows: int, stride: int, row_bytes: int) -> np.ndarray:
    """Cut `rows` rows of `row_bytes` out of a buffer laid out with `stride`."""
    needed = (rows - 1) * stride + row_bytes
    if buf.size < needed:
        raise ValueError(f"Buffer too small: need {needed} bytes, got {buf.size}")
    if stride == row_bytes:
        return buf[:rows * row_bytes].reshape(rows, row_bytes)
    padded = np.zeros(rows * stride, dtype=np.uint8)
    n = min(buf.size, rows * stride)
    padded[:n] = buf[:n]
    return padded.reshape(rows, stride)[:, :row_bytes]


def rgba_to_bgr(frame: RawFrame) -> np.ndarray:
    buf = np.frombuffer(frame.data, dtype=np.uint8)
    rows = _unpad_rows(buf, frame.height, frame.row_stride, frame.width * 4)
    rgba = np.ascontiguousarray(rows).reshape(frame.height, frame.width, 4)
    return cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGR)


def yuv420_to_bgr(frame: RawFrame) -> np.ndarray:
    """Convert a planar (I420) or semi-planar (NV12/NV21) 4:2:0 buffer.

    The luma plane uses `row_stride`. NV12/NV21 carry one interleaved chroma
    plane after it with the same stride. I420 carries separate U and V planes,
    each half the width and laid out with a stride of `row_stride // 2`.
    """
    if frame.width % 2 or frame.height % 2:
        raise ValueError("YUV 4:2:0 needs even width and height")

    buf = np.frombuffer(frame.data, dtype=np.uint8)
    if frame.pixel_format != 'i420':
        yuv = _unpad_rows(buf, frame.height * 3 // 2, frame.row_stride, frame.width)
        return cv2.cvtColor(np.ascontiguousarray(yuv), _YUV_CODES[frame.pixel_format])

    chroma_rows = frame.height // 2
    chroma_stride = frame.row_stride // 2
    u_start = frame.row_stride * frame.height
    v_start = u_start + chroma_stride * chroma_rows
    y = _unpad_rows(buf, frame.height, frame.row_stride, frame.width)
    u = _unpad_rows(buf[u_start:], chroma_rows, chroma_stride, frame.width // 2)
    v = _unpad_rows(buf[v_start:], chroma_rows, chroma_stride, frame.width // 2)
    planes = np.concatenate([y.ravel(), u.ravel(), v.ravel()])
    yuv = planes.reshape(frame.height * 3 // 2, frame.width)
    return cv2.cvtColor(yuv, _YUV_CODES['i420'])


def to_bgr(frame: RawFrame) -> np.ndarray:
    """Decode a RawFrame into an (H, W, 3) uint8 BGR array.

    Raises:
        ValueError: On unknown pixel format, bad dimensions or short buffers.
    """
    if frame.pixel_format not in PIXEL_FORMATS:
        raise ValueError(f"Unknown pixel format: {frame.pixel_format}")
    if frame.width <= 0 or frame.height <= 0:
        raise ValueError(f"Invalid frame size {frame.width}x{frame.height}")

    logger.debug("Decoding %s frame %dx%d (stride %d)", frame.pixel_format, frame.width, frame.height, frame.row_stride)
    if frame.pixel_format == 'rgba':
        if frame.row_stride < frame.width * 4:
            raise ValueError("row_stride smaller than width * 4")
        return rgba_to_bgr(frame)

    if frame.row_stride < frame.width:
        raise ValueError("row_stride smaller than width")
    return yuv420_to_bgr(frame)


def validate_bgr(bgr_frame: np.ndarray) -> None:
    if not isinstance(bgr_frame, np.ndarray):
        raise TypeError("bgr_frame must be numpy.ndarray")
    if bgr_frame.ndim != 3 or bgr_frame.shape[2] != 3:
        raise ValueError(f"Expected BGR frame (H, W, 3), got {bgr_frame.shape}")
    if bgr_frame.dtype != np.uint8:
        raise ValueError(f"Expected uint8 array, got {bgr_frame.dtype}")


def crop(bgr_frame: np.ndarray, rect: Rect) -> np.ndarray:
    """Copy of the region inside `rect`, clamped to the frame."""
    h, w = bgr_frame.shape[:2]
    r = rect.clamped(w, h)
    return bgr_frame[r.top:r.bottom, r.left:r.right].copy()
