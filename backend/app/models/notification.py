"""
Notification models for the tutoring platform.

In-app inbox entries produced by the booking lifecycle and the automatic
completion sweep.
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class NotificationType(str, Enum):
    """Kinds of inbox entries."""

    LESSON_REMINDER = "LESSON_REMINDER"
    LESSON_COMPLETED = "LESSON_COMPLETED"
    BOOKING_REQUESTED = "BOOKING_REQUESTED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    DISPUTE_OPENED = "DISPUTE_OPENED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"


NOTIFICATION_TYPES = tuple(member.value for member in NotificationType)


class Notification(Base):
    """In-app notification inbox entries."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint(
            "type IN ("
            + ", ".join(f"'{value}'" for value in NOTIFICATION_TYPES)
            + ")",
            name="ck_notifications_type",
        ),
        Index("ix_notifications_user_is_read", "user_id", "is_read"),
        Index("ix_notifications_user_created_at", "user_id", created_at.desc()),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "message": self.message,
            "data": self.data,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


__all__ = [
    "Notification",
    "NotificationType",
    "NOTIFICATION_TYPES",
]
