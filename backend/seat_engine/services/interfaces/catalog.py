"""
Pricing catalog interface.
Movies, rooms, seats and food items are owned by the catalog services;
the booking flow only reads prices from them.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class PricingCatalog(ABC):
    @abstractmethod
    async def showtime_price(self, showtime_id: str) -> Decimal:
        """Base ticket price for a showtime."""
        pass

    @abstractmethod
    async def seat_extra_price(self, showtime_id: str, seat_id: str) -> Decimal:
        """Surcharge for the seat type (VIP, couple); zero for a standard seat."""
        pass

    @abstractmethod
    async def item_price(self, item_id: str) -> Decimal:
        """Unit price of an ancillary item (food, drink)."""
        pass
