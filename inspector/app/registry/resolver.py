"""
Order registry resolver.

Resolves a public verification link by looking the order up in the
external order store. The Inspector only reads: one record, keyed by
order identifier.

Contract required from the order store:
    - a present record is returned
    - an absent record is reported as None
    - any collaborator failure raises RegistryUnavailable

The resolver never retries. The caller decides whether to scan again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from inspector.app.config import InspectorConfig
from inspector.app.errors import OrderNotFound, RegistryUnavailable
from inspector.app.schemas.manifest import ParcelManifest

logger = logging.getLogger(__name__)


class OrderRecord(BaseModel):
    """The slice of an order the Inspector reads."""

    id: str
    quantity: int
    product_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class OrderLookup(Protocol):
    async def fetch_order(self, order_id: str) -> Optional[OrderRecord]:
        """
        Fetch a single order by identifier.

        Raises:
            RegistryUnavailable: the order store could not answer.
        """
        ...


# ---------------------------------------------------------------------------
# REST-backed lookup
# ---------------------------------------------------------------------------

class PostgrestOrderLookup:
    """
    Order lookup against a PostgREST-style REST endpoint.

    Issues:
        GET {base}/rest/v1/orders?select=id,quantity,product:products(name)&id=eq.<id>

    HTTP 400 / 404 mean the identifier cannot match a record (for example
    a malformed UUID) and are reported as not found. Every other failure
    is RegistryUnavailable.
    """

    ORDERS_PATH = "/rest/v1/orders"
    SELECT = "id,quantity,product:products(name)"

    _NOT_FOUND_STATUSES = frozenset({400, 404})

    def __init__(
        self,
        config: InspectorConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = config.REGISTRY_URL
        self._timeout = config.REGISTRY_TIMEOUT_SECONDS
        self._api_key = (
            config.REGISTRY_API_KEY.get_secret_value()
            if config.REGISTRY_API_KEY is not None
            else None
        )
        self._client = http_client
        self._owns_client = http_client is None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_order(self, order_id: str) -> Optional[OrderRecord]:
        if not self._base_url:
            raise RegistryUnavailable(
                "Order registry is not configured."
            )

        try:
            response = await self._get_client().get(
                f"{self._base_url}{self.ORDERS_PATH}",
                params={"select": self.SELECT, "id": f"eq.{order_id}"},
                headers=self._headers(),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "registry_request_failed",
                extra={"error": type(exc).__name__},
            )
            raise RegistryUnavailable() from exc

        if response.status_code in self._NOT_FOUND_STATUSES:
            return None

        if response.status_code != 200:
            logger.warning(
                "registry_unexpected_status",
                extra={"status_code": response.status_code},
            )
            raise RegistryUnavailable()

        try:
            rows = response.json()
        except ValueError as exc:
            raise RegistryUnavailable(
                "Order registry returned an unreadable response."
            ) from exc

        if isinstance(rows, dict):
            rows = [rows]
        if not isinstance(rows, list):
            raise RegistryUnavailable(
                "Order registry returned an unreadable response."
            )
        if not rows:
            return None

        return _record_from_row(rows[0])


def _record_from_row(row: Any) -> OrderRecord:
    if not isinstance(row, dict):
        raise RegistryUnavailable(
            "Order registry returned an unreadable response."
        )

    try:
        return OrderRecord(
            id=row.get("id"),
            quantity=row.get("quantity"),
            product_name=_product_name(row.get("product")),
        )
    except ValidationError as exc:
        raise RegistryUnavailable(
            "Order registry returned an incomplete order record."
        ) from exc


def _product_name(product: Any) -> Optional[str]:
    """The related product may be embedded as an object, a list, or null."""
    if isinstance(product, list):
        product = product[0] if product else None
    if isinstance(product, dict):
        name = product.get("name")
        return name if isinstance(name, str) else None
    return None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class RegistryResolver:
    """
    Turns an order lookup into a ParcelManifest.

    The manifest timestamp is the observation time, since a registry
    record carries no seal time.
    """

    def __init__(
        self,
        lookup: OrderLookup,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._lookup = lookup
        self._clock = clock

    async def resolve(self, order_id: str) -> ParcelManifest:
        """
        Raises:
            OrderNotFound: no record with this identifier.
            RegistryUnavailable: the order store failed.
        """
        record = await self._lookup.fetch_order(order_id)
        if record is None:
            raise OrderNotFound()

        try:
            return ParcelManifest(
                product_name=record.product_name,
                quantity=record.quantity,
                order_id=record.id,
                observed_at=self._clock(),
            )
        except ValidationError as exc:
            raise RegistryUnavailable(
                "Order registry returned an invalid order record."
            ) from exc
