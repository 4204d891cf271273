"""
Request-scoped dependencies built on the process-wide service container.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from seat_engine.db.session import get_db
from seat_engine.services.booking_coordinator import BookingCoordinator
from seat_engine.services.booking_ledger import BookingLedger
from seat_engine.services.container import ServiceContainer
from seat_engine.services.gateway_fanout import GatewayFanout
from seat_engine.services.interfaces.catalog import PricingCatalog
from seat_engine.services.payment_reconciler import PaymentReconciler
from seat_engine.services.seat_lock_manager import SeatLockManager


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_lock_manager(container: ServiceContainer = Depends(get_container)) -> SeatLockManager:
    return container.lock_manager


def get_catalog(container: ServiceContainer = Depends(get_container)) -> PricingCatalog:
    return container.catalog


def get_fanout(container: ServiceContainer = Depends(get_container)) -> GatewayFanout:
    return container.fanout


def get_ledger(db: AsyncSession = Depends(get_db)) -> BookingLedger:
    return BookingLedger(db)


def get_booking_coordinator(
    db: AsyncSession = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
) -> BookingCoordinator:
    return BookingCoordinator(db, container.lock_manager, container.catalog, container.broadcaster)


def get_payment_reconciler(
    db: AsyncSession = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
) -> PaymentReconciler:
    return PaymentReconciler(
        db,
        container.broadcaster,
        container.verifiers,
        container.status_client,
        container.max_poll_attempts,
    )
