"""
Database models for the tutoring platform.

- Users (students and tutors)
- Bookings and their lifecycle satellites (dispute, payment)
- In-app notifications
"""

from .booking import ALLOWED_TRANSITIONS, Booking, BookingStatus, CompletionSource
from .booking_dispute import BookingDispute
from .notification import NOTIFICATION_TYPES, Notification, NotificationType
from .payment import BookingPayment, PaymentStatus
from .user import User, UserRole

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Booking",
    "BookingDispute",
    "BookingPayment",
    "BookingStatus",
    "CompletionSource",
    "NOTIFICATION_TYPES",
    "Notification",
    "NotificationType",
    "PaymentStatus",
    "User",
    "UserRole",
]
