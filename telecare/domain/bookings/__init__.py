# Bookings domain module
from telecare.domain.bookings.models import Booking, PaymentStatus

__all__ = [
    "Booking",
    "PaymentStatus",
]
