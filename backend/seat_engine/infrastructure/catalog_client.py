"""
HTTP client for the catalog services' public pricing endpoints.

Every call is bounded by EXTERNAL_CALL_TIMEOUT_SECONDS, which settings
validation keeps shorter than the hold TTL, so a slow catalog cannot stall
a booking past the lifetime of the holds it already verified.

A 404 means the client asked for a showtime, seat or item that does not
exist and is reported as invalid booking data. Anything else that is not a
readable price is the catalog's fault.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from seat_engine.core.errors import CatalogEntryNotFound, CatalogUnavailable
from seat_engine.core.logging import get_logger
from seat_engine.services.interfaces.catalog import PricingCatalog

logger = get_logger(__name__)


class HttpPricingCatalog(PricingCatalog):
    def __init__(self, base_url: str, timeout: float, client: httpx.AsyncClient = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def showtime_price(self, showtime_id: str) -> Decimal:
        data = await self._get(f"/showtimes/public/{showtime_id}")
        return self._price(data, "price")

    async def seat_extra_price(self, showtime_id: str, seat_id: str) -> Decimal:
        data = await self._get(f"/showtimes/public/{showtime_id}/seats/{seat_id}")
        # ordinary seats carry no surcharge
        return self._price(data, "extraPrice", default=Decimal("0"))

    async def item_price(self, item_id: str) -> Decimal:
        data = await self._get(f"/food-drinks/public/{item_id}")
        return self._price(data, "price")

    async def close(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.get(url)
            if response.status_code == httpx.codes.NOT_FOUND:
                logger.warning("catalog_entry_not_found", url=url)
                raise CatalogEntryNotFound(f"Nothing found for {path}")
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("catalog_request_failed", url=url, error=str(e))
            raise CatalogUnavailable(f"Catalog lookup failed for {path}") from e

        data = body.get("data", body) if isinstance(body, dict) else None
        if not isinstance(data, dict):
            logger.error("catalog_response_malformed", url=url)
            raise CatalogUnavailable(f"Catalog returned a malformed response for {path}")
        return data

    @staticmethod
    def _price(data: dict, field: str, default: Optional[Decimal] = None) -> Decimal:
        value = data.get(field)
        if value is None:
            if default is None:
                raise CatalogUnavailable(f"Catalog response has no {field}")
            return default
        try:
            price = Decimal(str(value))
        except InvalidOperation as e:
            raise CatalogUnavailable(f"Catalog returned an invalid {field}") from e
        if not price.is_finite():
            raise CatalogUnavailable(f"Catalog returned an invalid {field}")
        return price
