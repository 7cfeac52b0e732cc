from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class ScanEventType(str, Enum):
    """
    Progression events emitted during a scanning session.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Scanner lifecycle
    # ------------------------------------------------------------------
    SCAN_STARTED = "scan_started"
    SCANNER_RESET = "scanner_reset"
    SCANNER_DISPOSED = "scanner_disposed"

    # ------------------------------------------------------------------
    # Attempt progression
    # ------------------------------------------------------------------
    CODE_DETECTED = "code_detected"
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class ScanEvent(BaseModel):
    """
    An immutable observation of a state transition within the scanner.

    Events are:
    - strictly observational
    - transport-agnostic
    - not authoritative
    """

    event_id: UUID = Field(default_factory=uuid4)
    session_id: str = Field(..., description="Identifier of the scanner instance")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: ScanEventType

    # Optional contextual metadata (attempt, payload kind, reason, ...)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
