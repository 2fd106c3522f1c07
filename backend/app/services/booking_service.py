# backend/app/services/booking_service.py
"""
Booking Service for the tutoring platform

Handles the booking lifecycle operations that run alongside the automatic
completion sweep:
- Booking requests by students (PENDING)
- Tutor decisions (PENDING -> CONFIRMED | REJECTED)
- Student disputes (CONFIRMED + dispute)
- Explicit settlement on payment success (CONFIRMED -> COMPLETED)

Each transition is a conditional update, so a request that loses a race
against the sweep or another caller fails with a clear business error
instead of overwriting newer state. Notifications are best-effort: a failed
notification is logged and never undoes the transition.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..core.constants import MAX_REASON_LENGTH, MAX_SESSION_DURATION, MAX_SUBJECT_LENGTH, MIN_SESSION_DURATION
from ..core.exceptions import (
    InvalidStatusTransitionException,
    NotFoundException,
    NotificationDeliveryException,
    ValidationException,
)
from ..core.timezone_utils import Clock, ensure_utc, utc_now
from ..models.booking import Booking, BookingStatus, CompletionSource
from ..models.booking_dispute import BookingDispute
from ..models.notification import Notification
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class BookingService(BaseService):
    """Service layer for booking lifecycle operations."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            notification_service: Optional notification service instance
            clock: Time source for transition timestamps
        """
        super().__init__(db)
        self.notification_service = notification_service or NotificationService(db)
        self.booking_repository = RepositoryFactory.get_booking_repository(db)
        self.user_repository = RepositoryFactory.get_user_repository(db)
        self.clock = clock

    # Requests

    @BaseService.measure_operation("request_booking")
    def request_booking(
        self,
        student_id: str,
        tutor_id: str,
        subject: str,
        scheduled_at: datetime,
        duration_minutes: int,
        price: Union[Decimal, float, str],
    ) -> Booking:
        """
        Create a booking request in PENDING status.

        Raises:
            ValidationException: Missing or out-of-range fields
            NotFoundException: Student or tutor does not exist
        """
        subject = (subject or "").strip()
        if not subject:
            raise ValidationException("Subject is required", code="MISSING_SUBJECT")
        if len(subject) > MAX_SUBJECT_LENGTH:
            raise ValidationException(
                f"Subject must be at most {MAX_SUBJECT_LENGTH} characters", code="SUBJECT_TOO_LONG"
            )
        if scheduled_at is None:
            raise ValidationException("Scheduled time is required", code="MISSING_SCHEDULE")
        if not MIN_SESSION_DURATION <= int(duration_minutes) <= MAX_SESSION_DURATION:
            raise ValidationException(
                f"Duration must be between {MIN_SESSION_DURATION} and {MAX_SESSION_DURATION} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )
        amount = self._to_amount(price)
        if student_id == tutor_id:
            raise ValidationException("Students cannot book themselves", code="SELF_BOOKING")

        student = self.user_repository.get_student(student_id)
        if student is None:
            raise NotFoundException("Student not found", details={"student_id": student_id})
        tutor = self.user_repository.get_tutor(tutor_id)
        if tutor is None:
            raise NotFoundException("Tutor not found", details={"tutor_id": tutor_id})

        with self.transaction():
            booking = self.booking_repository.create(
                student_id=student_id,
                tutor_id=tutor_id,
                subject=subject,
                scheduled_at=ensure_utc(scheduled_at),
                duration_minutes=int(duration_minutes),
                price=amount,
                status=BookingStatus.PENDING.value,
            )
        logger.info(f"Booking {booking.id} requested by student {student_id} with tutor {tutor_id}")

        self._notify(self.notification_service.notify_booking_requested, booking)
        return booking

    # Tutor decisions

    def confirm_booking(self, booking_id: str, tutor_id: str) -> Booking:
        """Tutor accepts a pending booking."""
        return self._decide(booking_id, tutor_id, BookingStatus.CONFIRMED)

    def reject_booking(self, booking_id: str, tutor_id: str) -> Booking:
        """Tutor declines a pending booking."""
        return self._decide(booking_id, tutor_id, BookingStatus.REJECTED)

    @BaseService.measure_operation("decide_booking")
    def _decide(self, booking_id: str, tutor_id: str, decision: BookingStatus) -> Booking:
        booking = self._get_owned_booking(booking_id, tutor_id=tutor_id)
        now = self.clock()
        timestamp_field = "confirmed_at" if decision == BookingStatus.CONFIRMED else "rejected_at"

        with self.transaction():
            changed = self.booking_repository.transition_status(
                booking_id,
                BookingStatus.PENDING,
                decision,
                **{timestamp_field: now},
            )
            if not changed:
                self.db.refresh(booking)
                raise InvalidStatusTransitionException(booking_id, decision.value, booking.status)

        self.db.refresh(booking)
        logger.info(f"Booking {booking_id} {decision.value.lower()} by tutor {tutor_id}")
        self._notify(
            self.notification_service.notify_booking_decision,
            booking,
            decision == BookingStatus.CONFIRMED,
        )
        return booking

    # Disputes

    @BaseService.measure_operation("open_dispute")
    def open_dispute(self, booking_id: str, student_id: str, reason: str) -> BookingDispute:
        """
        Student disputes a confirmed booking, freezing it against auto-completion.

        Raises:
            ValidationException: Blank or oversized reason
            NotFoundException: Booking missing or not the student's
            DisputeAlreadyExistsException: Booking already disputed
            InvalidStatusTransitionException: Booking is not CONFIRMED
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Reason for dispute is required", code="MISSING_REASON")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationException(
                f"Reason must be at most {MAX_REASON_LENGTH} characters", code="REASON_TOO_LONG"
            )

        with self.transaction():
            dispute = self.booking_repository.attach_dispute(
                booking_id,
                reason,
                raised_by_id=student_id,
                student_id=student_id,
                disputed_at=self.clock(),
            )
        logger.info(f"Dispute {dispute.id} opened for booking {booking_id} by student {student_id}")

        booking = self.booking_repository.get_by_id(booking_id)
        if booking is not None:
            self._notify(self.notification_service.notify_dispute_opened, booking, reason)
        return dispute

    # Settlement

    @BaseService.measure_operation("settle_booking")
    def settle_booking(
        self,
        booking_id: str,
        amount: Union[Decimal, float, str],
        paid_by_id: Optional[str] = None,
        method: str = "STRIPE",
        provider_reference: Optional[str] = None,
    ) -> Booking:
        """
        Complete a confirmed booking on a verified payment success.

        Not time-gated. If the sweep already completed the booking the status
        is left alone and only the payment is recorded. Disputed bookings are
        refused; their outcome belongs to dispute resolution. A redelivered
        success for an already settled booking is a no-op.

        Raises:
            NotFoundException: Booking missing
            InvalidStatusTransitionException: Booking PENDING, REJECTED or disputed
        """
        payment_amount = self._to_amount(amount)
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})

        if (
            booking.status == BookingStatus.COMPLETED.value
            and self.booking_repository.get_payment(booking_id) is not None
        ):
            logger.info(f"Booking {booking_id} already settled; ignoring duplicate payment event")
            return booking

        now = self.clock()
        with self.transaction():
            completed = self.booking_repository.complete_if_eligible(
                booking_id, completed_at=now, source=CompletionSource.SETTLEMENT
            )
            if not completed:
                self.db.refresh(booking)
                if not self._awaits_payment(booking):
                    raise InvalidStatusTransitionException(
                        booking_id,
                        BookingStatus.COMPLETED.value,
                        booking.status,
                        message=(
                            f"Booking {booking_id} cannot be settled"
                            f" (status={booking.status}, disputed={booking.is_disputed})"
                        ),
                    )
                logger.info(
                    f"Booking {booking_id} already completed"
                    f" (source={booking.completion_source}); recording payment only"
                )
            self.booking_repository.create_payment(
                booking_id=booking_id,
                user_id=paid_by_id or booking.student_id,
                amount=payment_amount,
                method=method,
                provider_reference=provider_reference,
            )

        self.db.refresh(booking)
        logger.info(f"Payment succeeded for booking id: {booking_id}; booking settled")
        self._notify(self.notification_service.notify_payment_received, booking)
        return booking

    # Queries

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def get_bookings_for_user(
        self, user_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        bookings = self.booking_repository.get_bookings_for_user(user_id, status=status)
        logger.info(f"Bookings retrieved successfully for user id: {user_id}")
        return bookings

    # Helpers

    def _get_owned_booking(self, booking_id: str, tutor_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None or booking.tutor_id != tutor_id:
            raise NotFoundException(
                "Booking not found or does not belong to the tutor",
                details={"booking_id": booking_id},
            )
        return booking

    def _awaits_payment(self, booking: Booking) -> bool:
        """Completed (typically by the sweep) but no payment recorded yet."""
        return (
            booking.status == BookingStatus.COMPLETED.value
            and booking.disputed_at is None
            and self.booking_repository.get_dispute(booking.id) is None
            and self.booking_repository.get_payment(booking.id) is None
        )

    @staticmethod
    def _to_amount(value: Union[Decimal, float, str]) -> Decimal:
        try:
            amount = Decimal(str(value)).quantize(Decimal("0.01"))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationException("Price must be a number", code="INVALID_PRICE") from exc
        if amount < 0:
            raise ValidationException("Price cannot be negative", code="INVALID_PRICE")
        return amount

    def _notify(self, producer, *args) -> Optional[Notification]:
        try:
            return producer(*args)
        except NotificationDeliveryException as exc:
            logger.warning(f"Notification skipped: {exc.message}")
            return None
