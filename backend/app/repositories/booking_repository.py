# backend/app/repositories/booking_repository.py
"""
Booking Repository for the tutoring platform

Implements all data access operations for the booking lifecycle:
- Booking creation and user-scoped queries
- Candidate selection for the automatic completion sweep
- Conditional (compare-and-set) status transitions
- Dispute attachment
- Settlement payment records

Every status change is a single UPDATE whose WHERE clause carries the
expected prior state. A writer that lost a race sees zero affected rows and
reports a no-op instead of overwriting the winner.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import Any, List, Optional, cast

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload
from sqlalchemy.sql.elements import ColumnElement

from ..core.exceptions import (
    DisputeAlreadyExistsException,
    InvalidStatusTransitionException,
    NotFoundException,
    RepositoryException,
)
from ..core.timezone_utils import utc_now
from ..models.booking import Booking, BookingStatus, CompletionSource, is_valid_transition
from ..models.booking_dispute import BookingDispute
from ..models.payment import BookingPayment, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _undisputed() -> ColumnElement[bool]:
    """Criterion matching bookings without a dispute mark or attached dispute."""
    return and_(
        Booking.disputed_at.is_(None),
        Booking.id.not_in(select(BookingDispute.booking_id)),
    )


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Booking.dispute), joinedload(Booking.payment))

    # User-scoped queries

    def get_bookings_for_user(
        self, user_id: str, status: Optional[BookingStatus] = None, limit: int = 100
    ) -> List[Booking]:
        """
        Get bookings where the user is the student or the tutor.

        Args:
            user_id: Student or tutor ID
            status: Optional status filter
            limit: Maximum rows returned

        Returns:
            Bookings ordered by scheduled start, newest first
        """
        query = (
            self.db.query(Booking)
            .options(joinedload(Booking.student), joinedload(Booking.tutor))
            .filter((Booking.student_id == user_id) | (Booking.tutor_id == user_id))
        )
        if status is not None:
            query = query.filter(Booking.status == BookingStatus(status).value)
        query = query.order_by(Booking.scheduled_at.desc(), Booking.id.desc()).limit(limit)
        return self._execute_query(query)

    # Automatic completion

    def get_bookings_for_auto_completion(
        self, now: datetime, grace_period: timedelta
    ) -> List[Booking]:
        """
        Get bookings that are due for automatic completion.

        Returns bookings that are:
        - Status: CONFIRMED
        - Without a dispute
        - Scheduled to end at least ``grace_period`` before ``now``
        """
        cutoff = now - grace_period
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.ends_at <= cutoff,
                    _undisputed(),
                )
                .order_by(Booking.ends_at.asc(), Booking.id.asc())
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for auto completion: {str(e)}")
            raise RepositoryException(f"Failed to get bookings for auto completion: {str(e)}") from e

    def complete_if_eligible(
        self,
        booking_id: str,
        completed_at: datetime,
        source: CompletionSource = CompletionSource.AUTO,
    ) -> bool:
        """
        Mark a booking COMPLETED only if it is still CONFIRMED and undisputed.

        The guard is evaluated by the database at write time, so a dispute
        attached after candidate selection wins over the sweep.

        Returns:
            True if the booking was completed, False if the guard no longer holds
        """
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    _undisputed(),
                )
                .update(
                    {
                        Booking.status: BookingStatus.COMPLETED.value,
                        Booking.completed_at: completed_at,
                        Booking.completion_source: CompletionSource(source).value,
                    },
                    synchronize_session="fetch",
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error completing booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to complete booking {booking_id}: {str(e)}") from e
        return bool(updated)

    # Tutor decisions

    def transition_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        **fields: Any,
    ) -> bool:
        """
        Move a booking from ``expected_status`` to ``new_status`` atomically.

        Args:
            booking_id: Booking to update
            expected_status: Status the row must still have
            new_status: Target status (must be allowed by the lifecycle graph)
            **fields: Extra columns to set in the same statement

        Returns:
            True if the row changed, False if its status had already moved on

        Raises:
            InvalidStatusTransitionException: If the graph forbids the transition
        """
        expected = BookingStatus(expected_status)
        target = BookingStatus(new_status)
        if not is_valid_transition(expected, target):
            raise InvalidStatusTransitionException(
                booking_id, target.value, expected.value
            )

        values: dict[Any, Any] = {Booking.status: target.value}
        for key, value in fields.items():
            values[getattr(Booking, key)] = value

        try:
            updated = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.status == expected.value)
                .update(values, synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking {booking_id}: {str(e)}") from e
        return bool(updated)

    # Disputes

    def attach_dispute(
        self,
        booking_id: str,
        reason: str,
        raised_by_id: Optional[str] = None,
        student_id: Optional[str] = None,
        disputed_at: Optional[datetime] = None,
    ) -> BookingDispute:
        """
        Attach a dispute to a CONFIRMED booking.

        The booking row is marked first with a conditional UPDATE on
        ``status='CONFIRMED' AND disputed_at IS NULL``. That write serializes
        with the completion UPDATE on the same row, so exactly one of them
        wins and a completed booking can never gain a dispute.

        Args:
            booking_id: Booking to dispute
            reason: Free-text reason
            raised_by_id: User raising the dispute
            student_id: When given, the booking must belong to this student
            disputed_at: Dispute instant (defaults to now)

        Raises:
            NotFoundException: Booking missing or not owned by ``student_id``
            DisputeAlreadyExistsException: A dispute is already attached
            InvalidStatusTransitionException: Booking is not CONFIRMED
        """
        booking = self.get_by_id(booking_id)
        if booking is None or (student_id is not None and booking.student_id != student_id):
            raise NotFoundException(
                "Booking not found or does not belong to the student",
                details={"booking_id": booking_id},
            )
        if booking.is_disputed:
            raise DisputeAlreadyExistsException(booking_id)
        if booking.status != BookingStatus.CONFIRMED.value:
            raise self._not_disputable(booking_id, booking.status)

        try:
            marked = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.disputed_at.is_(None),
                )
                .update({Booking.disputed_at: disputed_at or utc_now()}, synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking booking {booking_id} as disputed: {str(e)}")
            raise RepositoryException(f"Failed to attach dispute: {str(e)}") from e
        if not marked:
            # Completed or disputed by another writer since the read above
            self.db.refresh(booking)
            if booking.is_disputed:
                raise DisputeAlreadyExistsException(booking_id)
            raise self._not_disputable(booking_id, booking.status)

        dispute = BookingDispute(booking_id=booking_id, reason=reason, raised_by_id=raised_by_id)
        try:
            self.db.add(dispute)
            self.db.flush()
        except IntegrityError as exc:
            # booking_id is unique: a concurrent dispute got there first
            self.db.rollback()
            self.logger.info(f"Concurrent dispute detected for booking {booking_id}: {exc}")
            raise DisputeAlreadyExistsException(booking_id) from exc
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Error attaching dispute to booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to attach dispute: {str(e)}") from e
        return dispute

    @staticmethod
    def _not_disputable(booking_id: str, status: str) -> InvalidStatusTransitionException:
        return InvalidStatusTransitionException(
            booking_id,
            "DISPUTED",
            status,
            message="Only confirmed bookings can be disputed",
        )

    def get_dispute(self, booking_id: str) -> Optional[BookingDispute]:
        return cast(
            Optional[BookingDispute],
            self.db.query(BookingDispute).filter(BookingDispute.booking_id == booking_id).first(),
        )

    # Settlement

    def get_payment(self, booking_id: str) -> Optional[BookingPayment]:
        return cast(
            Optional[BookingPayment],
            self.db.query(BookingPayment).filter(BookingPayment.booking_id == booking_id).first(),
        )

    def create_payment(
        self,
        booking_id: str,
        user_id: str,
        amount: Decimal,
        method: str = "STRIPE",
        provider_reference: Optional[str] = None,
    ) -> BookingPayment:
        """Record a settled payment for a booking. Does NOT commit."""
        payment = BookingPayment(
            booking_id=booking_id,
            user_id=user_id,
            amount=amount,
            method=method,
            status=PaymentStatus.COMPLETED.value,
            provider_reference=provider_reference,
        )
        try:
            self.db.add(payment)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Error recording payment for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to record payment: {str(e)}") from e
        return payment


__all__ = ["BookingRepository"]
