"""
Runtime configuration for the parcel Inspector.

This module centralizes environment-driven configuration: the shared
manifest secret, the order registry endpoint, and camera / decoding
limits.

Configuration is read-only at runtime. The shared secret is the only
state that crosses verification attempts and it must never change while
a process is running.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator


class InspectorConfig(BaseModel):
    """
    Runtime configuration for the parcel Inspector.

    Configuration is environment-driven, read-only at runtime, and must
    not influence verification outcomes beyond the values it declares.
    """

    # ------------------------------------------------------------------
    # Manifest cipher
    # ------------------------------------------------------------------

    SHARED_SECRET: SecretStr = Field(
        ...,
        description=(
            "Symmetric passphrase used to decrypt parcel manifests. "
            "Redacted from logs and reprs."
        ),
    )

    # ------------------------------------------------------------------
    # Order registry (public verification links)
    # ------------------------------------------------------------------

    REGISTRY_URL: str = Field(
        "",
        description=(
            "Base URL of the order registry REST endpoint. "
            "Empty disables public-link resolution."
        ),
    )

    REGISTRY_API_KEY: Optional[SecretStr] = Field(
        None,
        description="Anonymous API key presented to the order registry",
    )

    REGISTRY_TIMEOUT_SECONDS: float = Field(
        10.0,
        gt=0,
        description="Upper bound for a single registry lookup",
    )

    # ------------------------------------------------------------------
    # Camera and decoding limits
    # ------------------------------------------------------------------

    CAMERA_INDEX: int = Field(
        0,
        ge=0,
        description="Video device index (environment-facing camera)",
    )

    CAMERA_FRAME_WIDTH: int = Field(1280, gt=0)

    CAMERA_FRAME_HEIGHT: int = Field(720, gt=0)

    CAMERA_MAX_READ_FAILURES: int = Field(
        5,
        ge=1,
        description=(
            "Consecutive failed frame reads after which the camera "
            "is declared unavailable"
        ),
    )

    FRAME_RATE: float = Field(
        30.0,
        gt=0,
        description="Redraw cadence driving frame capture, in frames per second",
    )

    DECODE_MAX_DIMENSION: int = Field(
        1024,
        ge=64,
        description="Longest frame edge decoded without downsampling",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("SHARED_SECRET")
    @classmethod
    def secret_must_not_be_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("SHARED_SECRET must not be empty.")
        return v

    @field_validator("REGISTRY_URL")
    @classmethod
    def registry_url_must_be_http(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith(("http://", "https://")):
            raise ValueError(
                f"REGISTRY_URL must be an http(s) URL, got '{v}'."
            )
        return v

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.FRAME_RATE

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "InspectorConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """
        api_key_env = os.getenv("INSPECTOR_REGISTRY_API_KEY")

        return cls(
            SHARED_SECRET=SecretStr(
                os.getenv("INSPECTOR_SHARED_SECRET", "")
            ),
            REGISTRY_URL=os.getenv("INSPECTOR_REGISTRY_URL", ""),
            REGISTRY_API_KEY=(
                SecretStr(api_key_env)
                if api_key_env
                else None
            ),
            REGISTRY_TIMEOUT_SECONDS=float(
                os.getenv("INSPECTOR_REGISTRY_TIMEOUT_SECONDS", "10")
            ),
            CAMERA_INDEX=int(
                os.getenv("INSPECTOR_CAMERA_INDEX", "0")
            ),
            CAMERA_FRAME_WIDTH=int(
                os.getenv("INSPECTOR_CAMERA_FRAME_WIDTH", "1280")
            ),
            CAMERA_FRAME_HEIGHT=int(
                os.getenv("INSPECTOR_CAMERA_FRAME_HEIGHT", "720")
            ),
            CAMERA_MAX_READ_FAILURES=int(
                os.getenv("INSPECTOR_CAMERA_MAX_READ_FAILURES", "5")
            ),
            FRAME_RATE=float(
                os.getenv("INSPECTOR_FRAME_RATE", "30")
            ),
            DECODE_MAX_DIMENSION=int(
                os.getenv("INSPECTOR_DECODE_MAX_DIMENSION", "1024")
            ),
        )

    model_config = {
        "frozen": True,
    }
