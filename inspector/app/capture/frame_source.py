"""
Camera frame sources.

A frame source owns exactly one open video device. It is acquired with
open() and must be released on every exit path; callers use it as a
context manager or call release() explicitly. release() is idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import cv2
import numpy as np

from inspector.app.config import InspectorConfig
from inspector.app.errors import CameraUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterBuffer:
    """A single captured frame (H x W or H x W x C, uint8)."""

    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


class FrameSource(Protocol):
    """
    Interface for a live frame producer.

    read() returns None when no new frame is ready yet and raises
    CameraUnavailable when the device is gone.
    """

    def open(self) -> None:
        ...

    def read(self) -> Optional[RasterBuffer]:
        ...

    def release(self) -> None:
        ...


class CameraFrameSource:
    """
    OpenCV-backed camera source.

    The device is opened lazily by open() and never reopened after a
    failure: once CAMERA_MAX_READ_FAILURES consecutive reads fail the
    camera is declared unavailable and released.
    """

    def __init__(self, config: InspectorConfig) -> None:
        self._config = config
        self._capture: Optional[cv2.VideoCapture] = None
        self._read_failures = 0

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        if self._capture is not None:
            return

        index = self._config.CAMERA_INDEX
        capture = cv2.VideoCapture(index)

        if not capture.isOpened():
            capture.release()
            logger.error("camera_open_failed", extra={"camera_index": index})
            raise CameraUnavailable()

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.CAMERA_FRAME_WIDTH)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.CAMERA_FRAME_HEIGHT)
        # Keep only the newest frame; stale frames are useless for scanning.
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._capture = capture
        self._read_failures = 0
        logger.info("camera_opened", extra={"camera_index": index})

    def read(self) -> Optional[RasterBuffer]:
        if self._capture is None:
            raise CameraUnavailable("Camera is not open.")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            self._read_failures += 1
            logger.warning(
                "camera_read_failed",
                extra={
                    "failures": self._read_failures,
                    "max_failures": self._config.CAMERA_MAX_READ_FAILURES,
                },
            )
            if self._read_failures >= self._config.CAMERA_MAX_READ_FAILURES:
                self.release()
                raise CameraUnavailable("Camera stopped delivering frames.")
            return None

        self._read_failures = 0
        return RasterBuffer(pixels=frame)

    def release(self) -> None:
        if self._capture is None:
            return
        capture, self._capture = self._capture, None
        capture.release()
        logger.info("camera_released")

    def __enter__(self) -> "CameraFrameSource":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
