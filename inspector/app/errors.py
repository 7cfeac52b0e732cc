"""
Classified scan errors.

Each error maps one-to-one onto an ErrorKind. Components raise these at
the boundary where a library failure is first understood; the payload
verifier turns them into Failed outcomes. Anything that is not a
ScanError reaching the verifier is, by definition, unclassified.
"""

from __future__ import annotations

from typing import Optional

from inspector.app.schemas.outcome import ErrorKind


class ScanError(Exception):
    """Base class for classified scan failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN_SCAN_ERROR
    default_message: str = "Invalid QR code. This is not a secure parcel."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class CameraUnavailable(ScanError):
    kind = ErrorKind.CAMERA_UNAVAILABLE
    default_message = (
        "Camera access denied or unavailable. "
        "Please ensure you gave permission."
    )


class MalformedPublicLink(ScanError):
    kind = ErrorKind.MALFORMED_PUBLIC_LINK
    default_message = "Could not extract an order ID from the verification link."


class DecryptionFailed(ScanError):
    kind = ErrorKind.DECRYPTION_FAILED
    default_message = "Decryption failed. Key mismatch or data corruption."


class InvalidManifestStructure(ScanError):
    kind = ErrorKind.INVALID_MANIFEST_STRUCTURE
    default_message = "Decrypted payload is not a valid parcel manifest."


class OrderNotFound(ScanError):
    kind = ErrorKind.ORDER_NOT_FOUND
    default_message = "Order not found in public registry."


class RegistryUnavailable(ScanError):
    kind = ErrorKind.REGISTRY_UNAVAILABLE
    default_message = "Order registry is unavailable. Please try again."
