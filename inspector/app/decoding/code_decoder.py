"""
QR code decoder.

Pure function from a raster frame to an optional decoded string.
"No code in frame" is the normal result and is never an error.
ZBar (pyzbar) is tried first; OpenCV's QRCodeDetector is the fallback
and the only path when the ZBar shared library is not installed.
"""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from inspector.app.capture.frame_source import RasterBuffer

try:
    from pyzbar import pyzbar
    PYZBAR = True
except ImportError:
    # pyzbar raises ImportError when libzbar itself is missing
    PYZBAR = False

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 1024

# Frames darker than this are lens-covered or black; skip decoding.
_MIN_MEAN_BRIGHTNESS = 10

_detector: Optional[cv2.QRCodeDetector] = None


def decode_frame(
    frame: Optional[RasterBuffer],
    max_dimension: int = DEFAULT_MAX_DIMENSION,
) -> Optional[str]:
    """
    Decode the first QR code visible in a frame.

    Frames whose longest edge exceeds max_dimension are downsampled so
    that a single decode stays within one frame budget.
    """
    if frame is None or frame.pixels.size == 0:
        return None

    try:
        gray = _to_gray(frame.pixels)
    except cv2.error:
        logger.debug("frame_conversion_failed", exc_info=True)
        return None

    if gray.mean() < _MIN_MEAN_BRIGHTNESS:
        return None

    gray = _downsample(gray, max_dimension)

    data = None
    if PYZBAR:
        data = _decode_with_zbar(gray)
    if not data:
        data = _decode_with_opencv(gray)

    if not data:
        return None
    data = data.strip("\x00").strip()
    return data or None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_gray(pixels: np.ndarray) -> np.ndarray:
    if pixels.dtype != np.uint8:
        pixels = cv2.convertScaleAbs(pixels)
    if pixels.ndim == 2:
        return pixels
    if pixels.shape[2] == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_BGRA2GRAY)
    if pixels.shape[2] == 1:
        return pixels[:, :, 0]
    return cv2.cvtColor(pixels, cv2.COLOR_BGR2GRAY)


def _downsample(gray: np.ndarray, max_dimension: int) -> np.ndarray:
    longest = max(gray.shape[:2])
    if longest <= max_dimension:
        return gray
    scale = max_dimension / float(longest)
    size = (
        max(1, int(gray.shape[1] * scale)),
        max(1, int(gray.shape[0] * scale)),
    )
    return cv2.resize(gray, size, interpolation=cv2.INTER_AREA)


def _decode_with_zbar(gray: np.ndarray) -> Optional[str]:
    try:
        decoded = pyzbar.decode(gray, symbols=[pyzbar.ZBarSymbol.QRCODE])
    except Exception:
        logger.debug("zbar_decode_failed", exc_info=True)
        return None
    if not decoded:
        return None
    return decoded[0].data.decode("utf-8", errors="ignore")


def _decode_with_opencv(gray: np.ndarray) -> Optional[str]:
    global _detector
    if _detector is None:
        _detector = cv2.QRCodeDetector()
    try:
        data, _, _ = _detector.detectAndDecode(gray)
    except cv2.error:
        logger.debug("opencv_decode_failed", exc_info=True)
        return None
    return data or None
