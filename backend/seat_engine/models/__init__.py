from seat_engine.models.booking import Booking, BookingItem, BookingSeat, BookingStatus, BookingType

__all__ = ["Booking", "BookingItem", "BookingSeat", "BookingStatus", "BookingType"]
