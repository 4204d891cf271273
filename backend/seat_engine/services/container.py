"""
Service container and backend factory.
Builds the long-lived collaborators once per process from settings.

Backend selection (SEAT_LOCK_BACKEND):
- redis:  holds and seat events go through Redis; required with more than one worker
- memory: in-process store and channel; single worker, development only

If Redis is selected but unreachable the engine refuses to start instead of
silently falling back to a per-process store, which would allow double holds
across workers.
"""

from dataclasses import dataclass, field
from typing import Optional

from seat_engine.core.config import Settings
from seat_engine.core.logging import get_logger
from seat_engine.infrastructure.catalog_client import HttpPricingCatalog
from seat_engine.infrastructure.payment_providers import HmacPayloadVerifier, HttpPaymentStatusClient
from seat_engine.infrastructure.redis_client import get_redis
from seat_engine.infrastructure.redis_lock_store import RedisSeatLockStore
from seat_engine.infrastructure.redis_pubsub import RedisSeatEventChannel
from seat_engine.services.gateway_fanout import GatewayFanout
from seat_engine.services.interfaces import (
    InMemorySeatEventChannel,
    InMemorySeatLockStore,
    PaymentStatusClient,
    PaymentVerifier,
    PricingCatalog,
    SeatEventChannel,
    SeatLockStore,
)
from seat_engine.services.seat_event_broadcaster import SeatEventBroadcaster
from seat_engine.services.seat_lock_manager import SeatLockManager

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    lock_store: SeatLockStore
    channel: SeatEventChannel
    broadcaster: SeatEventBroadcaster
    lock_manager: SeatLockManager
    catalog: PricingCatalog
    fanout: GatewayFanout
    verifiers: dict[str, PaymentVerifier] = field(default_factory=dict)
    status_client: Optional[PaymentStatusClient] = None
    max_poll_attempts: int = 3

    async def close(self) -> None:
        await self.fanout.stop()
        for client in (self.catalog, self.status_client):
            close = getattr(client, "close", None)
            if close is not None:
                await close()


async def build_backends(settings: Settings) -> tuple[SeatLockStore, SeatEventChannel]:
    if settings.SEAT_LOCK_BACKEND == "memory":
        logger.warning("seat_lock_backend_in_memory", message="Holds are local to this process")
        return InMemorySeatLockStore(), InMemorySeatEventChannel()

    client = await get_redis()
    if client is None:
        raise RuntimeError("SEAT_LOCK_BACKEND=redis but Redis is disabled or unreachable")
    return RedisSeatLockStore(client), RedisSeatEventChannel(client, settings.SEAT_EVENTS_CHANNEL)


def build_container(
    settings: Settings,
    lock_store: SeatLockStore,
    channel: SeatEventChannel,
    catalog: Optional[PricingCatalog] = None,
    status_client: Optional[PaymentStatusClient] = None,
) -> ServiceContainer:
    broadcaster = SeatEventBroadcaster(channel)
    return ServiceContainer(
        lock_store=lock_store,
        channel=channel,
        broadcaster=broadcaster,
        lock_manager=SeatLockManager(lock_store, broadcaster, settings.SEAT_HOLD_TTL_SECONDS),
        catalog=catalog or HttpPricingCatalog(
            settings.CATALOG_SERVICE_URL, settings.EXTERNAL_CALL_TIMEOUT_SECONDS
        ),
        fanout=GatewayFanout(
            channel,
            max_connections_per_showtime=settings.FANOUT_MAX_CONNECTIONS_PER_SHOWTIME,
            queue_size=settings.FANOUT_QUEUE_SIZE,
        ),
        verifiers={
            provider: HmacPayloadVerifier(secret)
            for provider, secret in settings.PAYMENT_PROVIDER_SECRETS.items()
        },
        status_client=status_client or HttpPaymentStatusClient(
            settings.PAYMENT_STATUS_URLS, settings.EXTERNAL_CALL_TIMEOUT_SECONDS
        ),
        max_poll_attempts=settings.PAYMENT_POLL_MAX_ATTEMPTS,
    )
