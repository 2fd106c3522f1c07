# backend/app/services/notification_service.py
"""
Notification Service for the tutoring platform

Records in-app inbox entries for booking lifecycle events and serves the
inbox operations (list, unread count, mark as read).
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    NotFoundException,
    NotificationDeliveryException,
    RepositoryException,
    ServiceException,
)
from ..models.booking import Booking
from ..models.notification import Notification, NotificationType
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """Service for producing and reading in-app notifications."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.notification_repository = RepositoryFactory.get_notification_repository(db)

    @BaseService.measure_operation("create_notification")
    def create_notification(
        self,
        user_id: str,
        message: str,
        type: NotificationType,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Record one notification and commit it.

        Raises:
            NotificationDeliveryException: If the row could not be written
        """
        type_value = NotificationType(type).value
        try:
            with self.transaction():
                notification = self.notification_repository.create_notification(
                    user_id=user_id,
                    message=message,
                    type=type_value,
                    data=data,
                )
        except (ServiceException, SQLAlchemyError, RepositoryException) as exc:
            raise NotificationDeliveryException(user_id, type_value, str(exc)) from exc
        logger.info(f"Notification {notification.id} ({type_value}) created for user {user_id}")
        return notification

    # Booking lifecycle producers

    def notify_lesson_completed(self, booking_id: str, tutor_id: str, subject: str) -> Notification:
        """Tell the tutor that a lesson was completed automatically."""
        return self.create_notification(
            user_id=tutor_id,
            message=f"The lesson for {subject} has been automatically marked as completed.",
            type=NotificationType.LESSON_COMPLETED,
            data={"booking_id": booking_id},
        )

    def notify_booking_requested(self, booking: Booking) -> Notification:
        return self.create_notification(
            user_id=booking.tutor_id,
            message=f"New booking request for {booking.subject}.",
            type=NotificationType.BOOKING_REQUESTED,
            data={"booking_id": booking.id},
        )

    def notify_booking_decision(self, booking: Booking, confirmed: bool) -> Notification:
        if confirmed:
            message = f"Your booking for {booking.subject} has been confirmed."
            type = NotificationType.BOOKING_CONFIRMED
        else:
            message = f"Your booking for {booking.subject} has been rejected."
            type = NotificationType.BOOKING_REJECTED
        return self.create_notification(
            user_id=booking.student_id,
            message=message,
            type=type,
            data={"booking_id": booking.id},
        )

    def notify_dispute_opened(self, booking: Booking, reason: str) -> Notification:
        return self.create_notification(
            user_id=booking.tutor_id,
            message=f"The student opened a dispute for the lesson on {booking.subject}: {reason}",
            type=NotificationType.DISPUTE_OPENED,
            data={"booking_id": booking.id},
        )

    def notify_payment_received(self, booking: Booking) -> Notification:
        return self.create_notification(
            user_id=booking.tutor_id,
            message=f"Payment received for the lesson on {booking.subject}.",
            type=NotificationType.PAYMENT_RECEIVED,
            data={"booking_id": booking.id},
        )

    # Inbox

    def get_notifications(
        self, user_id: str, limit: int = 20, offset: int = 0, unread_only: bool = False
    ) -> List[Notification]:
        return self.notification_repository.get_user_notifications(
            user_id, limit=limit, offset=offset, unread_only=unread_only
        )

    def get_unread_count(self, user_id: str) -> int:
        return self.notification_repository.get_unread_count(user_id)

    @BaseService.measure_operation("mark_notification_read")
    def mark_as_read(self, user_id: str, notification_id: str) -> None:
        """
        Mark one notification as read.

        Raises:
            NotFoundException: Notification missing or owned by another user
        """
        with self.transaction():
            updated = self.notification_repository.mark_as_read_for_user(user_id, notification_id)
            if not updated:
                raise NotFoundException(
                    "Notification not found or does not belong to user",
                    details={"notification_id": notification_id},
                )
        logger.info(f"Notification marked as read with id: {notification_id}")

    def mark_all_as_read(self, user_id: str) -> int:
        with self.transaction():
            count = self.notification_repository.mark_all_as_read(user_id)
        logger.info(f"Marked {count} notifications as read for user {user_id}")
        return count
