# backend/tests/conftest.py
"""
Pytest configuration for the booking lifecycle tests.

Every test gets its own in-memory SQLite engine, so services are free to
commit and roll back exactly as they do in production.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import os

# Set before any app imports
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CI"] = "true"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
import app.models  # noqa: F401
from app.models.booking import Booking, BookingStatus
from app.models.booking_dispute import BookingDispute
from app.models.user import User, UserRole

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now


def _create_user(db: Session, email: str, full_name: str, role: UserRole) -> User:
    user = User(email=email, full_name=full_name, role=role.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def student(db) -> User:
    return _create_user(db, "student@example.com", "Sam Student", UserRole.STUDENT)


@pytest.fixture
def other_student(db) -> User:
    return _create_user(db, "other.student@example.com", "Olive Other", UserRole.STUDENT)


@pytest.fixture
def tutor(db) -> User:
    return _create_user(db, "tutor@example.com", "Terry Tutor", UserRole.TUTOR)


@pytest.fixture
def make_booking(db, student, tutor, now):
    """
    Factory for committed bookings.

    ``ends_ago`` places the scheduled end relative to the fixed test clock.
    """

    def _make(
        status: BookingStatus = BookingStatus.CONFIRMED,
        ends_ago: timedelta = timedelta(minutes=10),
        duration_minutes: int = 60,
        subject: str = "Algebra",
        dispute_reason: str | None = None,
        student_id: str | None = None,
        tutor_id: str | None = None,
    ) -> Booking:
        ends_at = now - ends_ago
        booking = Booking(
            student_id=student_id or student.id,
            tutor_id=tutor_id or tutor.id,
            subject=subject,
            scheduled_at=ends_at - timedelta(minutes=duration_minutes),
            duration_minutes=duration_minutes,
            price=Decimal("45.00"),
            status=status.value,
            disputed_at=now if dispute_reason is not None else None,
        )
        db.add(booking)
        db.flush()
        if dispute_reason is not None:
            db.add(
                BookingDispute(
                    booking_id=booking.id,
                    reason=dispute_reason,
                    raised_by_id=booking.student_id,
                )
            )
        db.commit()
        return booking

    return _make
