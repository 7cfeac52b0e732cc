"""
Scan session events.

Observations of a scanner's progress (scan started, code detected,
verdict reached, disposed) for whatever presentation layer is attached.
"""

from inspector.app.events.emitter import NullEventEmitter, ScanEventEmitter
from inspector.app.events.memory_emitter import MemoryQueueEventEmitter
from inspector.app.events.models import ScanEvent, ScanEventType

__all__ = [
    "MemoryQueueEventEmitter",
    "NullEventEmitter",
    "ScanEvent",
    "ScanEventEmitter",
    "ScanEventType",
]
