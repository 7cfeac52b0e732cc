"""
Parcel manifest schema.

A manifest is the structured record a physical parcel is checked
against: product, quantity and order. It is produced either by
decrypting a self-contained QR payload or by resolving a public
verification link against the order registry.

Wire form (inside the encrypted payload):

    {"p": "<product name>", "q": <quantity>, "id": "<order id>", "t": "<ISO-8601>"}

Manifests are held for display only. They are never written back to
storage by the Inspector.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

UNKNOWN_PRODUCT = "Unknown Product"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ParcelManifest(BaseModel):
    """
    Decrypted or resolved parcel manifest.

    Missing product metadata is not a trust failure, so an absent or
    blank product name falls back to UNKNOWN_PRODUCT instead of failing
    validation.
    """

    product_name: str = Field(
        UNKNOWN_PRODUCT,
        validation_alias=AliasChoices("product_name", "p"),
    )

    quantity: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("quantity", "q"),
    )

    order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("order_id", "id"),
    )

    observed_at: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("observed_at", "t"),
        description="Seal time from the payload, or the scan time when absent",
    )

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )

    @field_validator("product_name", mode="before")
    @classmethod
    def fallback_product_name(cls, v: Any) -> Any:
        if v is None:
            return UNKNOWN_PRODUCT
        if isinstance(v, str) and not v.strip():
            return UNKNOWN_PRODUCT
        return v

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_boolean_quantity(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("quantity must be a number, not a boolean")
        return v

    @field_validator("observed_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_wire(self) -> Dict[str, Any]:
        """Compact payload form used inside encrypted QR codes."""
        return {
            "p": self.product_name,
            "q": self.quantity,
            "id": self.order_id,
            "t": self.observed_at.isoformat().replace("+00:00", "Z"),
        }
