# backend/app/services/lesson_completion_service.py
"""
Lesson Completion Service for the tutoring platform

Runs one automatic completion sweep: every CONFIRMED, undisputed booking
whose scheduled end lies at least the grace period in the past is moved to
COMPLETED and its tutor is notified.

Each candidate is committed on its own. A failure on one booking is logged
and counted, and the sweep moves on to the next. The notification is
recorded after the completion commit, so a notification failure never
reverts a completed lesson.
"""

from datetime import datetime, timedelta
import logging
import time
from typing import List, Optional, TypedDict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    NotificationDeliveryException,
    RepositoryException,
    StoreUnavailableException,
)
from ..core.metrics import (
    LESSON_COMPLETION_BOOKINGS_TOTAL,
    LESSON_COMPLETION_NOTIFICATION_FAILURES_TOTAL,
    LESSON_COMPLETION_SWEEP_DURATION_SECONDS,
    LESSON_COMPLETION_SWEEPS_TOTAL,
)
from ..core.timezone_utils import Clock, utc_now
from ..models.booking import CompletionSource
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class SweepResults(TypedDict):
    candidates: int
    completed: int
    skipped: int
    failed: int
    notifications_failed: int
    completed_ids: List[str]
    processed_at: str
    aborted: bool


class _Candidate(TypedDict):
    id: str
    tutor_id: str
    subject: str


class LessonCompletionService(BaseService):
    """Completes elapsed, undisputed lessons and notifies their tutors."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Clock = utc_now,
        grace_period: Optional[timedelta] = None,
    ):
        super().__init__(db)
        self.notification_service = notification_service or NotificationService(db)
        self.booking_repository = RepositoryFactory.get_booking_repository(db)
        self.clock = clock
        if grace_period is None:
            grace_period = timedelta(minutes=settings.lesson_completion_grace_minutes)
        self.grace_period = grace_period

    def complete_due_lessons(self, now: Optional[datetime] = None) -> SweepResults:
        """
        Run one completion sweep.

        Args:
            now: Sweep instant; defaults to the service clock

        Returns:
            Per-sweep summary counters

        Raises:
            StoreUnavailableException: If candidates could not be selected.
                Nothing has been modified in that case.
        """
        started = time.monotonic()
        now = now or self.clock()
        results: SweepResults = {
            "candidates": 0,
            "completed": 0,
            "skipped": 0,
            "failed": 0,
            "notifications_failed": 0,
            "completed_ids": [],
            "processed_at": now.isoformat(),
            "aborted": False,
        }

        try:
            candidates = self._select_candidates(now)
        except (RepositoryException, SQLAlchemyError) as exc:
            self.db.rollback()
            results["aborted"] = True
            LESSON_COMPLETION_SWEEPS_TOTAL.labels(outcome="aborted").inc()
            logger.error(f"Lesson completion sweep aborted: candidate selection failed: {exc}")
            raise StoreUnavailableException(
                "Could not select bookings for automatic completion",
                details={"processed_at": results["processed_at"]},
            ) from exc

        results["candidates"] = len(candidates)
        if candidates:
            logger.info(f"Found {len(candidates)} bookings due for automatic completion")

        for candidate in candidates:
            self._process_candidate(candidate, now, results)

        LESSON_COMPLETION_SWEEPS_TOTAL.labels(outcome="ok").inc()
        LESSON_COMPLETION_SWEEP_DURATION_SECONDS.observe(time.monotonic() - started)
        logger.info(
            "Lesson completion sweep finished: "
            f"{results['completed']} completed, {results['skipped']} skipped, "
            f"{results['failed']} failed, {results['notifications_failed']} notifications failed"
        )
        return results

    def _select_candidates(self, now: datetime) -> List[_Candidate]:
        bookings = self.booking_repository.get_bookings_for_auto_completion(
            now=now, grace_period=self.grace_period
        )
        # Plain values survive the per-booking rollbacks below
        candidates: List[_Candidate] = [
            {"id": b.id, "tutor_id": b.tutor_id, "subject": b.subject} for b in bookings
        ]
        self.db.rollback()
        return candidates

    def _process_candidate(self, candidate: _Candidate, now: datetime, results: SweepResults) -> None:
        booking_id = candidate["id"]
        try:
            completed = self.booking_repository.complete_if_eligible(
                booking_id, completed_at=now, source=CompletionSource.AUTO
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            results["failed"] += 1
            LESSON_COMPLETION_BOOKINGS_TOTAL.labels(result="failed").inc()
            logger.error(f"Failed to auto-complete booking {booking_id}: {exc}")
            return

        if not completed:
            # Disputed, settled or otherwise moved on since selection
            results["skipped"] += 1
            LESSON_COMPLETION_BOOKINGS_TOTAL.labels(result="skipped_guard").inc()
            logger.info(f"Booking {booking_id} no longer eligible for automatic completion")
            return

        results["completed"] += 1
        results["completed_ids"].append(booking_id)
        LESSON_COMPLETION_BOOKINGS_TOTAL.labels(result="completed").inc()
        logger.info(f"Booking {booking_id} automatically marked as completed")

        try:
            self.notification_service.notify_lesson_completed(
                booking_id=booking_id,
                tutor_id=candidate["tutor_id"],
                subject=candidate["subject"],
            )
        except NotificationDeliveryException as exc:
            self.db.rollback()
            results["notifications_failed"] += 1
            LESSON_COMPLETION_NOTIFICATION_FAILURES_TOTAL.inc()
            logger.warning(f"Booking {booking_id} completed but tutor notification failed: {exc.message}")
        except Exception as exc:
            self.db.rollback()
            results["notifications_failed"] += 1
            LESSON_COMPLETION_NOTIFICATION_FAILURES_TOTAL.inc()
            logger.error(f"Unexpected error notifying tutor for booking {booking_id}: {exc}")
