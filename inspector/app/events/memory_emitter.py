from __future__ import annotations

import asyncio
from typing import AsyncIterator

from inspector.app.events.models import ScanEvent, ScanEventType
from inspector.app.events.emitter import ScanEventEmitter


class MemoryQueueEventEmitter(ScanEventEmitter):
    """
    In-memory async event emitter for a presentation layer.

    Properties:
    - single-consumer
    - non-blocking for the scanning path
    - deterministic ordering
    - terminates cleanly when the scanner is disposed
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ScanEvent | None] = asyncio.Queue()
        self._closed = False

    async def emit(self, event: ScanEvent) -> None:
        if self._closed:
            return

        await self._queue.put(event)

        if event.event_type == ScanEventType.SCANNER_DISPOSED:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[ScanEvent]:
        """
        Async generator yielding emitted events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
