"""
Verification outcome schema.

Defines the terminal result of a single scan attempt. Exactly one
outcome exists per attempt and it is either Verified or Failed; there is
no intermediate or ambiguous verdict.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from inspector.app.schemas.manifest import ParcelManifest


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class ErrorKind(str, Enum):
    """
    Classified failure reasons.

    Every failure surfaced to the presentation layer carries exactly one
    of these. UNKNOWN_SCAN_ERROR is the backstop for unclassified faults.
    """

    CAMERA_UNAVAILABLE = "camera_unavailable"
    MALFORMED_PUBLIC_LINK = "malformed_public_link"
    DECRYPTION_FAILED = "decryption_failed"
    INVALID_MANIFEST_STRUCTURE = "invalid_manifest_structure"
    ORDER_NOT_FOUND = "order_not_found"
    REGISTRY_UNAVAILABLE = "registry_unavailable"
    UNKNOWN_SCAN_ERROR = "unknown_scan_error"


class ScannerState(str, Enum):
    """
    States of the verification state machine.

    VERIFIED and FAILED are terminal for an attempt.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    DECODING = "decoding"
    VERIFIED = "verified"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScannerState.VERIFIED, ScannerState.FAILED)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

class Verified(BaseModel):
    """The parcel matches a manifest recovered from the scanned code."""

    kind: Literal["verified"] = "verified"
    manifest: ParcelManifest

    model_config = ConfigDict(frozen=True)


class Failed(BaseModel):
    """The scan attempt was rejected."""

    kind: Literal["failed"] = "failed"
    reason: ErrorKind
    detail: str = Field(..., description="Human-facing explanation")

    model_config = ConfigDict(frozen=True)


VerificationOutcome = Annotated[
    Union[Verified, Failed],
    Field(discriminator="kind"),
]
