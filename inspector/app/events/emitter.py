from __future__ import annotations

from typing import Protocol

from inspector.app.events.models import ScanEvent


class ScanEventEmitter(Protocol):
    """
    Sink for scanner progress, usually a UI status line or a log feed.

    emit() is awaited from the orchestrator's own task, between state
    transitions. A slow sink delays the next transition, so sinks should
    hand the event off and return. Exceptions raised here are logged by
    the orchestrator and otherwise ignored.
    """

    async def emit(self, event: ScanEvent) -> None:
        ...


class NullEventEmitter:
    """Default sink when nothing is watching the scanner. Drops every event."""

    async def emit(self, event: ScanEvent) -> None:
        return None
