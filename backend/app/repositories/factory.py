# backend/app/repositories/factory.py
"""
Repository Factory for the tutoring platform

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .notification_repository import NotificationRepository
    from .user_repository import UserRepository

class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def get_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking lifecycle operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def get_notification_repository(db: Session) -> "NotificationRepository":
        """Create repository for notification inbox operations."""
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def get_user_repository(db: Session) -> "UserRepository":
        """Create repository for user lookups."""
        from .user_repository import UserRepository

        return UserRepository(db)
