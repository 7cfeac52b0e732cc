"""
Frame capture loop.

Pulls one frame per scheduler tick, hands it to the code decoder and
reports the first decoded payload. The loop knows nothing about
manifests or outcomes.

Lifecycle:
    start()   acquire the camera and request the first frame
    pause()   stop requesting frames, keep the camera
    resume()  request frames again
    stop()    cancel the pending frame and release the camera

A payload pauses the loop before on_code runs, so no further decode
happens until the owner resumes or restarts it. Any failure while
reading or decoding a frame (CameraUnavailable, or an unexpected fault)
stops the loop, releases the camera and is handed to on_error. It is
not retried.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from inspector.app.capture.frame_source import FrameSource, RasterBuffer
from inspector.app.capture.scheduler import FrameScheduler
from inspector.app.errors import CameraUnavailable

logger = logging.getLogger(__name__)

Decoder = Callable[[RasterBuffer], Optional[str]]


class FrameCaptureLoop:
    def __init__(
        self,
        *,
        source: FrameSource,
        scheduler: FrameScheduler,
        decoder: Decoder,
        on_code: Callable[[str], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        self._source = source
        self._scheduler = scheduler
        self._decoder = decoder
        self._on_code = on_code
        self._on_error = on_error

        self._running = False
        self._paused = False
        self._analyzing = False

        self.frames_read = 0
        self.decode_calls = 0
        self.frames_skipped = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Acquire the camera and begin requesting frames.

        Raises:
            CameraUnavailable: the device could not be opened.
        """
        if self._running:
            return

        self._source.open()
        self._running = True
        self._paused = False
        logger.debug("capture_loop_started")
        self._scheduler.request_frame(self._tick)

    def pause(self) -> None:
        if not self._running or self._paused:
            return
        self._paused = True
        self._scheduler.cancel()

    def resume(self) -> None:
        if not self._running or not self._paused:
            return
        self._paused = False
        self._scheduler.request_frame(self._tick)

    def stop(self) -> None:
        self._scheduler.cancel()
        was_running = self._running
        self._running = False
        self._paused = False
        self._source.release()
        if was_running:
            logger.debug(
                "capture_loop_stopped",
                extra={
                    "frames_read": self.frames_read,
                    "decode_calls": self.decode_calls,
                    "frames_skipped": self.frames_skipped,
                },
            )

    # ------------------------------------------------------------------
    # Frame tick
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        if not self._running or self._paused:
            return

        # Previous frame still being analyzed: drop this one.
        if self._analyzing:
            self.frames_skipped += 1
            return

        self._analyzing = True
        try:
            payload = self._analyze_next_frame()
        except CameraUnavailable as exc:
            self.stop()
            self._on_error(exc)
            return
        except Exception as exc:
            logger.exception("capture_tick_failed")
            self.stop()
            self._on_error(exc)
            return
        finally:
            self._analyzing = False

        if payload:
            self.pause()
            self._on_code(payload)
            return

        self._scheduler.request_frame(self._tick)

    def _analyze_next_frame(self) -> Optional[str]:
        frame = self._source.read()
        if frame is None:
            return None
        self.frames_read += 1
        self.decode_calls += 1
        return self._decoder(frame)
