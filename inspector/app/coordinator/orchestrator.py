"""
Verification orchestrator.

Owns one scanning session: the camera, the capture loop and the
transition from a scanned payload to a terminal outcome.

State machine:

    IDLE --start()--> SCANNING --code--> DECODING --> VERIFIED | FAILED
      ^                                                     |
      +-------------------- reset() / try_again() ----------+

IMPORTANT:
- VERIFIED and FAILED are terminal. Nothing re-arms the camera except
  an explicit reset() / try_again().
- DECODING cannot re-enter itself: at most one verification is in
  flight per orchestrator.
- reset() and dispose() invalidate the in-flight attempt. Its result is
  discarded on completion and never mutates state.
- The camera is released on every exit path: terminal outcome, reset,
  capture failure and dispose. A fault inside a frame tick ends the
  attempt in FAILED(UNKNOWN_SCAN_ERROR) rather than stalling SCANNING.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Dict, Optional, Set
from uuid import uuid4

from inspector.app.capture.capture_loop import Decoder, FrameCaptureLoop
from inspector.app.capture.frame_source import CameraFrameSource, FrameSource
from inspector.app.capture.scheduler import AsyncioFrameScheduler, FrameScheduler
from inspector.app.config import InspectorConfig
from inspector.app.coordinator.payload_verifier import (
    UNKNOWN_SCAN_MESSAGE,
    PayloadVerifier,
)
from inspector.app.decoding.code_decoder import decode_frame
from inspector.app.errors import CameraUnavailable, ScanError
from inspector.app.schemas.outcome import (
    ErrorKind,
    Failed,
    ScannerState,
    VerificationOutcome,
    Verified,
)

# Events (observational only)
from inspector.app.events import (
    NullEventEmitter,
    ScanEvent,
    ScanEventEmitter,
    ScanEventType,
)

logger = logging.getLogger(__name__)


class VerificationOrchestrator:
    def __init__(
        self,
        *,
        verifier: PayloadVerifier,
        frame_source: FrameSource,
        scheduler: FrameScheduler,
        decoder: Decoder = decode_frame,
        emitter: Optional[ScanEventEmitter] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. The frame source is not
        opened until start().
        """
        self._verifier = verifier
        self._emitter = emitter or NullEventEmitter()
        self.session_id = session_id or uuid4().hex

        self._capture = FrameCaptureLoop(
            source=frame_source,
            scheduler=scheduler,
            decoder=decoder,
            on_code=self._on_code,
            on_error=self._on_capture_error,
        )

        self._state = ScannerState.IDLE
        self._outcome: Optional[VerificationOutcome] = None
        self._generation = 0
        self._disposed = False
        self._inflight: Optional[asyncio.Task] = None
        self._settled = asyncio.Event()
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: InspectorConfig,
        verifier: PayloadVerifier,
        *,
        emitter: Optional[ScanEventEmitter] = None,
        frame_source: Optional[FrameSource] = None,
        scheduler: Optional[FrameScheduler] = None,
    ) -> "VerificationOrchestrator":
        return cls(
            verifier=verifier,
            frame_source=frame_source or CameraFrameSource(config),
            scheduler=scheduler or AsyncioFrameScheduler(config.frame_interval),
            decoder=functools.partial(
                decode_frame,
                max_dimension=config.DECODE_MAX_DIMENSION,
            ),
            emitter=emitter,
        )

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ScannerState:
        return self._state

    @property
    def outcome(self) -> Optional[VerificationOutcome]:
        return self._outcome

    @property
    def capture_loop(self) -> FrameCaptureLoop:
        return self._capture

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> ScannerState:
        """
        IDLE -> SCANNING. Acquires the camera.

        A camera that cannot be opened ends the attempt immediately in
        FAILED(CAMERA_UNAVAILABLE).
        """
        self._ensure_live()
        if self._state is not ScannerState.IDLE:
            raise RuntimeError(
                f"Cannot start scanning from state '{self._state.value}'."
            )

        self._generation += 1
        self._outcome = None
        self._settled.clear()
        self._state = ScannerState.SCANNING

        try:
            self._capture.start()
        except CameraUnavailable as exc:
            self._settle(Failed(reason=exc.kind, detail=exc.message))
            await self._emit(
                ScanEventType.VERIFICATION_FAILED,
                {"reason": exc.kind.value},
            )
            return self._state

        logger.info(
            "scan_started",
            extra={"session_id": self.session_id, "attempt": self._generation},
        )
        await self._emit(ScanEventType.SCAN_STARTED)
        return self._state

    async def submit(self, raw: str) -> Optional[VerificationOutcome]:
        """
        Verify a payload obtained outside the camera (pasted text or a
        simulated scan). Only legal while SCANNING.

        Returns None if the attempt was reset or disposed meanwhile.
        """
        self._ensure_live()
        if self._state is not ScannerState.SCANNING:
            raise RuntimeError(
                f"Cannot submit a payload in state '{self._state.value}'."
            )

        self._capture.pause()
        task = self._start_decoding(raw)
        # Caller cancellation must not strand the machine in DECODING.
        return await asyncio.shield(task)

    async def wait_for_outcome(self) -> Optional[VerificationOutcome]:
        """
        Wait until the current attempt settles.

        Settles on a terminal outcome, reset or dispose. Returns the
        outcome, or None when the attempt was discarded.
        """
        await self._settled.wait()
        return self._outcome

    async def join(self) -> None:
        """Wait for the in-flight verification, whether or not it is discarded."""
        task = self._inflight
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def reset(self) -> None:
        """
        Return to IDLE, discarding the outcome and any in-flight attempt.

        Releases the camera. Scanning does not resume until start().
        """
        self._ensure_live()
        if self._state is ScannerState.IDLE:
            return

        previous = self._state
        self._invalidate()
        self._state = ScannerState.IDLE
        logger.info(
            "scanner_reset",
            extra={"session_id": self.session_id, "from_state": previous.value},
        )
        await self._emit(
            ScanEventType.SCANNER_RESET,
            {"from_state": previous.value},
        )

    async def try_again(self) -> ScannerState:
        """Explicit user retry: reset() followed by start()."""
        await self.reset()
        return await self.start()

    async def dispose(self) -> None:
        """
        Tear the session down.

        Safe to call more than once. No state changes and no events
        happen after the first call.
        """
        if self._disposed:
            return

        self._invalidate()
        self._disposed = True
        self._state = ScannerState.IDLE
        logger.info("scanner_disposed", extra={"session_id": self.session_id})
        await self._emit(ScanEventType.SCANNER_DISPOSED, force=True)

    async def __aenter__(self) -> "VerificationOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

    # ------------------------------------------------------------------
    # Capture loop callbacks (run on the frame tick)
    # ------------------------------------------------------------------

    def _on_code(self, raw: str) -> None:
        if self._disposed or self._state is not ScannerState.SCANNING:
            return
        self._start_decoding(raw)

    def _on_capture_error(self, exc: Exception) -> None:
        if self._disposed or self._state is not ScannerState.SCANNING:
            return

        if isinstance(exc, ScanError):
            outcome = Failed(reason=exc.kind, detail=exc.message)
        else:
            outcome = Failed(
                reason=ErrorKind.UNKNOWN_SCAN_ERROR,
                detail=UNKNOWN_SCAN_MESSAGE,
            )

        logger.error(
            "capture_failed",
            extra={
                "session_id": self.session_id,
                "attempt": self._generation,
                "reason": outcome.reason.value,
            },
        )
        self._settle(outcome)
        self._spawn(
            self._emit(
                ScanEventType.VERIFICATION_FAILED,
                {"reason": outcome.reason.value},
            )
        )

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def _start_decoding(self, raw: str) -> asyncio.Task:
        self._state = ScannerState.DECODING
        self._inflight = asyncio.get_running_loop().create_task(
            self._decode(raw, self._generation)
        )
        return self._inflight

    async def _decode(
        self,
        raw: str,
        generation: int,
    ) -> Optional[VerificationOutcome]:
        await self._emit(
            ScanEventType.CODE_DETECTED,
            {"payload_length": len(raw)},
        )
        await self._emit(ScanEventType.VERIFICATION_STARTED)

        outcome = await self._verifier.verify(raw)

        if self._disposed or generation != self._generation:
            logger.info(
                "verification_result_discarded",
                extra={"session_id": self.session_id, "attempt": generation},
            )
            return None

        self._settle(outcome)

        if isinstance(outcome, Verified):
            await self._emit(
                ScanEventType.VERIFICATION_COMPLETED,
                {"order_id": outcome.manifest.order_id},
            )
        else:
            await self._emit(
                ScanEventType.VERIFICATION_FAILED,
                {"reason": outcome.reason.value},
            )
        return outcome

    # ------------------------------------------------------------------
    # Structural helpers
    # ------------------------------------------------------------------

    def _settle(self, outcome: VerificationOutcome) -> None:
        self._capture.stop()
        self._outcome = outcome
        self._state = (
            ScannerState.VERIFIED
            if isinstance(outcome, Verified)
            else ScannerState.FAILED
        )
        self._settled.set()

    def _invalidate(self) -> None:
        self._generation += 1
        self._capture.stop()
        self._outcome = None
        self._settled.set()

    def _ensure_live(self) -> None:
        if self._disposed:
            raise RuntimeError("Orchestrator has been disposed.")

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _emit(
        self,
        event_type: ScanEventType,
        details: Optional[Dict[str, Any]] = None,
        *,
        force: bool = False,
    ) -> None:
        """
        Emit an observational event.

        Emission failures are logged and never affect the session.
        """
        if self._disposed and not force:
            return
        try:
            await self._emitter.emit(
                ScanEvent(
                    session_id=self.session_id,
                    event_type=event_type,
                    details={"attempt": self._generation, **(details or {})},
                )
            )
        except Exception:
            logger.warning("scan_event_emission_failed", exc_info=True)
