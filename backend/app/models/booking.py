# backend/app/models/booking.py
"""
Booking model for the tutoring platform.

Represents a scheduled tutoring session between a student and a tutor.
The booking stores its own schedule (start and end instant) so that the
automatic completion sweep can select elapsed lessons with one indexed
comparison.

Lifecycle:
    PENDING -> CONFIRMED | REJECTED   (tutor decision)
    CONFIRMED -> COMPLETED            (completion sweep or settlement)

A disputed booking stays CONFIRMED with disputed_at set and a BookingDispute
attached; the dispute freezes it against automatic completion.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"  # Requested by student, awaiting tutor
    CONFIRMED = "CONFIRMED"  # Accepted by tutor
    REJECTED = "REJECTED"  # Declined by tutor
    COMPLETED = "COMPLETED"  # Lesson completed


class CompletionSource(str, Enum):
    """What moved a booking to COMPLETED."""

    AUTO = "auto"
    SETTLEMENT = "settlement"


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.REJECTED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.REJECTED: frozenset(),  # Terminal state
    BookingStatus.COMPLETED: frozenset(),  # Terminal state
}


def is_valid_transition(current_status: str, new_status: str) -> bool:
    """Return True if the lifecycle graph allows current_status -> new_status."""
    try:
        current = BookingStatus(current_status)
        target = BookingStatus(new_status)
    except ValueError:
        return False
    return target in ALLOWED_TRANSITIONS[current]


class Booking(Base):
    """
    Tutoring session between a student and a tutor.

    Design: the subject, price and schedule are stored on the booking so the
    record stays meaningful regardless of later changes to the tutor's offer.
    """

    __tablename__ = "bookings"

    # Primary key
    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Core relationships
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    # Session data
    subject = Column(String(255), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING, index=True)
    completion_source = Column(String(20), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    # Set by the conditional write that freezes the booking against completion
    disputed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    student = relationship("User", foreign_keys=[student_id], backref="student_bookings")
    tutor = relationship("User", foreign_keys=[tutor_id], backref="tutor_bookings")
    dispute = relationship(
        "BookingDispute", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )
    payment = relationship(
        "BookingPayment", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'REJECTED', 'COMPLETED')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "completion_source IS NULL OR completion_source IN ('auto', 'settlement')",
            name="ck_bookings_completion_source",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("ends_at > scheduled_at", name="check_schedule_order"),
        # Serves the completion sweep's selection predicate
        Index("ix_bookings_status_ends_at", "status", "ends_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        """Initialize as a pending request and derive the scheduled end."""
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING
        if self.ends_at is None and self.scheduled_at is not None and self.duration_minutes:
            self.ends_at = self.scheduled_at + timedelta(minutes=int(self.duration_minutes))
        logger.debug(f"Creating booking for student {self.student_id} with tutor {self.tutor_id}")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Booking {self.id}: student={self.student_id}, tutor={self.tutor_id}, "
            f"subject={self.subject}, scheduled_at={self.scheduled_at}, status={self.status}>"
        )

    @property
    def is_disputed(self) -> bool:
        return self.disputed_at is not None or self.dispute is not None

    def is_due_for_completion(self, now: datetime, grace_period: timedelta) -> bool:
        """
        In-memory mirror of the sweep's selection predicate.

        Args:
            now: Current instant (timezone-aware)
            grace_period: Minimum time past the scheduled end
        """
        if self.status != BookingStatus.CONFIRMED or self.is_disputed:
            return False
        ends_at = self.ends_at
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        return ends_at <= now - grace_period

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""

        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "student_id": self.student_id,
            "tutor_id": self.tutor_id,
            "subject": self.subject,
            "scheduled_at": _iso(self.scheduled_at),
            "ends_at": _iso(self.ends_at),
            "duration_minutes": self.duration_minutes,
            "price": float(self.price) if self.price is not None else None,
            "status": self.status,
            "is_disputed": self.is_disputed,
            "completion_source": self.completion_source,
            "created_at": _iso(self.created_at),
            "confirmed_at": _iso(self.confirmed_at),
            "rejected_at": _iso(self.rejected_at),
            "completed_at": _iso(self.completed_at),
            "disputed_at": _iso(self.disputed_at),
        }
