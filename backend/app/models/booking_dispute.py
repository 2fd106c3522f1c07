"""Booking dispute satellite table."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingDispute(Base):
    """Dispute raised by the student for a single booking."""

    __tablename__ = "booking_disputes"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    raised_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    booking = relationship("Booking", back_populates="dispute")
    raised_by = relationship("User", foreign_keys=[raised_by_id])

    def __repr__(self) -> str:
        return f"<BookingDispute booking={self.booking_id} raised_by={self.raised_by_id}>"
