# backend/app/repositories/user_repository.py
"""
User Repository for the tutoring platform

Handles User lookups needed by the booking lifecycle (student and tutor
participant checks).
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.user import User, UserRole
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User data access."""

    def __init__(self, db: Session):
        """Initialize with User model."""
        super().__init__(db, User)

    def get_tutor(self, user_id: str) -> Optional[User]:
        """Get a user only if they hold the tutor role."""
        user = self.get_by_id(user_id, load_relationships=False)
        if user is None or user.role != UserRole.TUTOR.value:
            return None
        return user

    def get_student(self, user_id: str) -> Optional[User]:
        """Get a user only if they hold the student role."""
        user = self.get_by_id(user_id, load_relationships=False)
        if user is None or user.role != UserRole.STUDENT.value:
            return None
        return user


__all__ = ["UserRepository"]
