"""
FastAPI entrypoint for the parcel Inspector.

The camera-driven scanner runs inside the host UI; this service is the
presentation surface for payloads that arrive as text (pasted codes and
the development "simulate scan" path). Both paths use the same
PayloadVerifier, so a payload gets the same verdict either way.

The verdict is always in the response body. A Failed outcome is a
normal, classified result and is returned with HTTP 200.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from pydantic import BaseModel, ConfigDict, Field

from inspector.app.config import InspectorConfig
from inspector.app.coordinator.payload_verifier import PayloadVerifier
from inspector.app.registry.resolver import OrderLookup, PostgrestOrderLookup
from inspector.app.schemas.outcome import VerificationOutcome

logger = logging.getLogger(__name__)


def get_app_version() -> str:
    try:
        return version("parcel-inspector")
    except PackageNotFoundError:
        return "0.1.0"


# ---------------------------------------------------------------------------
# Request schema
# ---------------------------------------------------------------------------

class VerifyRequest(BaseModel):
    payload: str = Field(
        ...,
        min_length=1,
        description="Raw text recovered from the parcel QR code",
    )

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    config: Optional[InspectorConfig] = None,
    lookup: Optional[OrderLookup] = None,
) -> FastAPI:
    """
    Build the Inspector application.

    config and lookup are injectable for tests; by default configuration
    is read from the environment and the order registry is reached over
    a shared httpx client owned by the app lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            settings = config or InspectorConfig.from_env()
        except Exception:
            logger.exception("invalid_inspector_configuration")
            raise

        http_client: Optional[httpx.AsyncClient] = None
        order_lookup = lookup
        if order_lookup is None:
            http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.REGISTRY_TIMEOUT_SECONDS),
                headers={"User-Agent": f"parcel-inspector/{get_app_version()}"},
            )
            order_lookup = PostgrestOrderLookup(settings, http_client=http_client)

        app.state.config = settings
        app.state.verifier = PayloadVerifier.from_config(settings, order_lookup)

        logger.info(
            "inspector_startup",
            extra={
                "version": get_app_version(),
                "registry_configured": bool(settings.REGISTRY_URL),
            },
        )

        try:
            yield
        finally:
            logger.info("inspector_shutdown")
            if http_client is not None:
                try:
                    await http_client.aclose()
                except Exception:
                    logger.warning("http_client_shutdown_failed")

    app = FastAPI(
        title="Parcel Inspector",
        description="Camera-based parcel verification against order manifests",
        version=get_app_version(),
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": get_app_version()}

    @app.post("/verify", response_model=VerificationOutcome)
    async def verify(body: VerifyRequest, request: Request):
        """
        Verify a scanned payload.

        Returns Verified with the manifest, or Failed with a classified
        reason and a human-facing detail.
        """
        verifier: PayloadVerifier = request.app.state.verifier
        return await verifier.verify(body.payload)

    return app
