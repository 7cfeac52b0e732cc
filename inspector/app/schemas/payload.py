"""
Classified scan payloads.

A raw string recovered from a QR code is classified into exactly one
VerificationInput variant before any cipher or registry work happens.
Dispatch on the variant is exhaustive: the orchestrator never sniffs
raw strings itself.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class PublicLink(BaseModel):
    """A `/verify/<orderId>` link with no embedded data parameter."""

    kind: Literal["public_link"] = "public_link"
    order_id: str = Field(..., min_length=1)
    source: str = Field(..., description="The scanned link, verbatim")

    model_config = ConfigDict(frozen=True)

    @property
    def canonical(self) -> str:
        return self.source


class EncryptedLink(BaseModel):
    """A URL whose `data` query parameter carries the ciphertext."""

    kind: Literal["encrypted_link"] = "encrypted_link"
    cipher_text: str

    model_config = ConfigDict(frozen=True)

    @property
    def canonical(self) -> str:
        return self.cipher_text


class RawCipherText(BaseModel):
    """The scanned payload is itself the ciphertext."""

    kind: Literal["raw_cipher_text"] = "raw_cipher_text"
    cipher_text: str

    model_config = ConfigDict(frozen=True)

    @property
    def canonical(self) -> str:
        return self.cipher_text


VerificationInput = Annotated[
    Union[PublicLink, EncryptedLink, RawCipherText],
    Field(discriminator="kind"),
]
