# backend/app/models/user.py
"""
User model for the tutoring platform.

Students and tutors are both represented by this model, differentiated by
the role field. Credentials live outside this service.
"""

from enum import Enum
import logging

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    """Marketplace roles."""

    STUDENT = "student"
    TUTOR = "tutor"


class User(Base):
    """Marketplace participant referenced by bookings and notifications."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('student', 'tutor')", name="ck_users_role"),
    )

    @property
    def is_tutor(self) -> bool:
        return self.role == UserRole.TUTOR

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
