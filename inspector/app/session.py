"""
Single-attempt scanning session.

Convenience entry for hosts that want one verdict from the local camera:
acquire the camera, scan until a code is verified or rejected, release
everything, return the outcome.
"""

from __future__ import annotations

from typing import Optional

from inspector.app.capture.frame_source import FrameSource
from inspector.app.capture.scheduler import FrameScheduler
from inspector.app.config import InspectorConfig
from inspector.app.coordinator.orchestrator import VerificationOrchestrator
from inspector.app.coordinator.payload_verifier import PayloadVerifier
from inspector.app.events import ScanEventEmitter
from inspector.app.registry.resolver import OrderLookup, PostgrestOrderLookup
from inspector.app.schemas.outcome import VerificationOutcome


async def scan_once(
    config: InspectorConfig,
    *,
    lookup: Optional[OrderLookup] = None,
    emitter: Optional[ScanEventEmitter] = None,
    frame_source: Optional[FrameSource] = None,
    scheduler: Optional[FrameScheduler] = None,
) -> Optional[VerificationOutcome]:
    owned_lookup = None
    if lookup is None:
        owned_lookup = lookup = PostgrestOrderLookup(config)

    verifier = PayloadVerifier.from_config(config, lookup)

    try:
        async with VerificationOrchestrator.from_config(
            config,
            verifier,
            emitter=emitter,
            frame_source=frame_source,
            scheduler=scheduler,
        ) as orchestrator:
            await orchestrator.start()
            outcome = await orchestrator.wait_for_outcome()
            await orchestrator.join()
            return outcome
    finally:
        if owned_lookup is not None:
            await owned_lookup.aclose()
