# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the tutoring platform

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- BookingRepository: Booking lifecycle, completion candidates, conditional transitions
- NotificationRepository: In-app inbox entries
- UserRepository: Participant lookups

Usage:
    from app.repositories import RepositoryFactory

    booking_repo = RepositoryFactory.get_booking_repository(db)
    due = booking_repo.get_bookings_for_auto_completion(now, grace_period)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "NotificationRepository",
    "RepositoryFactory",
    "UserRepository",
]
