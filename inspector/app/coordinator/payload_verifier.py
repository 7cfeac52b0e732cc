"""
Payload verifier.

Classifies a scanned payload and drives it down exactly one path:

    PublicLink                   -> RegistryResolver.resolve
    EncryptedLink / RawCipherText -> decrypt_manifest

The verifier NEVER raises for a payload. Every classified ScanError
becomes Failed(kind, message); anything else becomes
Failed(UNKNOWN_SCAN_ERROR) so that an unexplained fault can never be
read as success. Task cancellation is not intercepted.
"""

from __future__ import annotations

import logging
from typing import Union

from pydantic import SecretStr

from inspector.app.config import InspectorConfig
from inspector.app.crypto.manifest_cipher import decrypt_manifest
from inspector.app.decoding.normalizer import classify_payload
from inspector.app.errors import ScanError
from inspector.app.registry.resolver import OrderLookup, RegistryResolver
from inspector.app.schemas.manifest import ParcelManifest
from inspector.app.schemas.outcome import (
    ErrorKind,
    Failed,
    VerificationOutcome,
    Verified,
)
from inspector.app.schemas.payload import (
    EncryptedLink,
    PublicLink,
    RawCipherText,
    VerificationInput,
)

logger = logging.getLogger(__name__)

UNKNOWN_SCAN_MESSAGE = "Invalid QR code. This is not a secure parcel."


class PayloadVerifier:
    def __init__(
        self,
        *,
        secret: Union[SecretStr, str],
        resolver: RegistryResolver,
    ) -> None:
        self._secret = (
            secret if isinstance(secret, SecretStr) else SecretStr(secret)
        )
        self._resolver = resolver

    @classmethod
    def from_config(
        cls,
        config: InspectorConfig,
        lookup: OrderLookup,
    ) -> "PayloadVerifier":
        return cls(
            secret=config.SHARED_SECRET,
            resolver=RegistryResolver(lookup),
        )

    async def verify(self, raw: str) -> VerificationOutcome:
        try:
            verification_input = classify_payload(raw)
            logger.debug(
                "payload_classified",
                extra={"payload_kind": verification_input.kind},
            )
            manifest = await self._dispatch(verification_input)

        except ScanError as exc:
            logger.info(
                "verification_failed",
                extra={"reason": exc.kind.value},
            )
            return Failed(reason=exc.kind, detail=exc.message)

        except Exception:
            logger.exception("verification_unclassified_error")
            return Failed(
                reason=ErrorKind.UNKNOWN_SCAN_ERROR,
                detail=UNKNOWN_SCAN_MESSAGE,
            )

        logger.info(
            "verification_succeeded",
            extra={"order_id": manifest.order_id},
        )
        return Verified(manifest=manifest)

    async def _dispatch(
        self,
        verification_input: VerificationInput,
    ) -> ParcelManifest:
        if isinstance(verification_input, PublicLink):
            return await self._resolver.resolve(verification_input.order_id)

        if isinstance(verification_input, (EncryptedLink, RawCipherText)):
            return decrypt_manifest(
                verification_input.cipher_text,
                self._secret.get_secret_value(),
            )

        raise TypeError(
            f"Unhandled verification input: {type(verification_input).__name__}"
        )
