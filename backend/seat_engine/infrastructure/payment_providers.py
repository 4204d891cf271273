"""
Payment provider adapters.

Callback authenticity is checked with an HMAC-SHA256 signature over the
canonical form of the payload (keys sorted, `key=value` joined by `&`,
signature field excluded). Each provider gets its own secret.
"""

import hashlib
import hmac
from typing import Any

import httpx

from seat_engine.core.errors import PaymentProviderError
from seat_engine.core.logging import get_logger
from seat_engine.services.interfaces.payment import (
    PaymentStatusClient,
    PaymentVerifier,
    ProviderStatus,
    Verification,
)

logger = get_logger(__name__)

SIGNATURE_FIELD = "signature"


def canonical_payload(raw_payload: dict[str, Any]) -> str:
    return "&".join(
        f"{key}={raw_payload[key]}" for key in sorted(raw_payload) if key != SIGNATURE_FIELD
    )


def sign_payload(raw_payload: dict[str, Any], secret: str) -> str:
    return hmac.new(secret.encode(), canonical_payload(raw_payload).encode(), hashlib.sha256).hexdigest()


class HmacPayloadVerifier(PaymentVerifier):
    def __init__(self, secret: str):
        self.secret = secret

    def verify(self, raw_payload: dict[str, Any]) -> Verification:
        received = raw_payload.get(SIGNATURE_FIELD)
        if not isinstance(received, str):
            return Verification.TAMPERED
        expected = sign_payload(raw_payload, self.secret)
        if hmac.compare_digest(expected, received):
            return Verification.AUTHENTIC
        return Verification.TAMPERED


class HttpPaymentStatusClient(PaymentStatusClient):
    """
    Queries `{status_url}/{booking_id}` and expects `{"status": "success" | "failure" | "pending"}`.
    """

    def __init__(self, status_urls: dict[str, str], timeout: float, client: httpx.AsyncClient = None):
        self.status_urls = status_urls
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def query_status(self, provider: str, booking_id: int) -> ProviderStatus:
        base_url = self.status_urls.get(provider)
        if not base_url:
            raise PaymentProviderError(f"No status endpoint configured for provider {provider}")

        url = f"{base_url.rstrip('/')}/{booking_id}"
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            body = response.json()
            if not isinstance(body, dict):
                raise PaymentProviderError(f"{provider} returned an unreadable status")
            return ProviderStatus(body.get("status"))
        except httpx.HTTPError as e:
            logger.warning("payment_status_query_failed", provider=provider, booking_id=booking_id, error=str(e))
            raise PaymentProviderError(f"{provider} status query failed") from e
        except ValueError as e:
            raise PaymentProviderError(f"{provider} returned an unreadable status") from e

    async def close(self) -> None:
        await self.client.aclose()
