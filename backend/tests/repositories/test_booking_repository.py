"""
Tests for BookingRepository conditional updates and candidate selection.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import update

from app.core.exceptions import (
    DisputeAlreadyExistsException,
    InvalidStatusTransitionException,
    NotFoundException,
)
from app.core.timezone_utils import ensure_utc
from app.models.booking import Booking, BookingStatus, CompletionSource
from app.repositories.booking_repository import BookingRepository

GRACE = timedelta(minutes=5)


class TestAutoCompletionCandidates:
    def test_selects_only_elapsed_confirmed_undisputed(self, db, make_booking, now):
        due = make_booking(ends_ago=timedelta(minutes=10))
        make_booking(ends_ago=timedelta(hours=1), dispute_reason="no-show")
        make_booking(ends_ago=timedelta(minutes=1))
        make_booking(status=BookingStatus.PENDING, ends_ago=timedelta(hours=2))
        make_booking(status=BookingStatus.REJECTED, ends_ago=timedelta(hours=2))
        make_booking(status=BookingStatus.COMPLETED, ends_ago=timedelta(hours=2))

        repo = BookingRepository(db)
        candidates = repo.get_bookings_for_auto_completion(now=now, grace_period=GRACE)

        assert [b.id for b in candidates] == [due.id]

    def test_boundary_is_inclusive(self, db, make_booking, now):
        exactly = make_booking(ends_ago=GRACE)

        candidates = BookingRepository(db).get_bookings_for_auto_completion(now, GRACE)

        assert [b.id for b in candidates] == [exactly.id]

    def test_orders_oldest_first(self, db, make_booking, now):
        newer = make_booking(ends_ago=timedelta(minutes=30))
        older = make_booking(ends_ago=timedelta(hours=3))

        candidates = BookingRepository(db).get_bookings_for_auto_completion(now, GRACE)

        assert [b.id for b in candidates] == [older.id, newer.id]


class TestCompleteIfEligible:
    def test_completes_confirmed_booking(self, db, make_booking, now):
        booking = make_booking()
        repo = BookingRepository(db)

        assert repo.complete_if_eligible(booking.id, completed_at=now) is True
        db.commit()
        db.expire_all()

        stored = repo.get_by_id(booking.id)
        assert stored.status == BookingStatus.COMPLETED.value
        assert stored.completion_source == CompletionSource.AUTO.value
        assert ensure_utc(stored.completed_at) == now

    def test_noop_when_disputed(self, db, make_booking, now):
        booking = make_booking(dispute_reason="tutor never showed up")
        repo = BookingRepository(db)

        assert repo.complete_if_eligible(booking.id, completed_at=now) is False
        db.commit()
        db.expire_all()

        assert repo.get_by_id(booking.id).status == BookingStatus.CONFIRMED.value

    @pytest.mark.parametrize(
        "status", [BookingStatus.PENDING, BookingStatus.REJECTED, BookingStatus.COMPLETED]
    )
    def test_noop_when_not_confirmed(self, db, make_booking, now, status):
        booking = make_booking(status=status)

        assert BookingRepository(db).complete_if_eligible(booking.id, completed_at=now) is False

    def test_second_call_is_noop(self, db, make_booking, now):
        booking = make_booking()
        repo = BookingRepository(db)

        assert repo.complete_if_eligible(booking.id, completed_at=now) is True
        assert repo.complete_if_eligible(booking.id, completed_at=now) is False

    def test_unknown_booking_is_noop(self, db, now):
        assert BookingRepository(db).complete_if_eligible("01UNKNOWNBOOKING0000000000", now) is False


class TestTransitionStatus:
    def test_pending_to_confirmed(self, db, make_booking, now):
        booking = make_booking(status=BookingStatus.PENDING)
        repo = BookingRepository(db)

        changed = repo.transition_status(
            booking.id, BookingStatus.PENDING, BookingStatus.CONFIRMED, confirmed_at=now
        )
        db.commit()
        db.expire_all()

        assert changed is True
        assert repo.get_by_id(booking.id).status == BookingStatus.CONFIRMED.value

    def test_stale_expected_status_is_noop(self, db, make_booking):
        booking = make_booking(status=BookingStatus.REJECTED)

        changed = BookingRepository(db).transition_status(
            booking.id, BookingStatus.PENDING, BookingStatus.CONFIRMED
        )

        assert changed is False

    def test_rejects_transition_outside_graph(self, db, make_booking):
        booking = make_booking(status=BookingStatus.COMPLETED)

        with pytest.raises(InvalidStatusTransitionException) as exc_info:
            BookingRepository(db).transition_status(
                booking.id, BookingStatus.COMPLETED, BookingStatus.CONFIRMED
            )

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"


class TestAttachDispute:
    def test_attaches_to_confirmed_booking(self, db, make_booking, student):
        booking = make_booking()
        repo = BookingRepository(db)

        dispute = repo.attach_dispute(booking.id, "no-show", raised_by_id=student.id, student_id=student.id)
        db.commit()

        assert dispute.booking_id == booking.id
        assert repo.get_dispute(booking.id).reason == "no-show"

    def test_already_disputed(self, db, make_booking):
        booking = make_booking(dispute_reason="first")

        with pytest.raises(DisputeAlreadyExistsException):
            BookingRepository(db).attach_dispute(booking.id, "second")

    def test_missing_booking(self, db):
        with pytest.raises(NotFoundException):
            BookingRepository(db).attach_dispute("01UNKNOWNBOOKING0000000000", "reason")

    def test_other_students_booking_is_not_found(self, db, make_booking, other_student):
        booking = make_booking()

        with pytest.raises(NotFoundException) as exc_info:
            BookingRepository(db).attach_dispute(booking.id, "reason", student_id=other_student.id)

        assert "does not belong to the student" in exc_info.value.message

    def test_pending_booking_cannot_be_disputed(self, db, make_booking):
        booking = make_booking(status=BookingStatus.PENDING)

        with pytest.raises(InvalidStatusTransitionException):
            BookingRepository(db).attach_dispute(booking.id, "reason")

    def test_dispute_blocks_later_completion(self, db, make_booking, now):
        booking = make_booking()
        repo = BookingRepository(db)
        repo.attach_dispute(booking.id, "no-show")
        db.commit()

        assert repo.complete_if_eligible(booking.id, completed_at=now) is False

    def test_marks_booking_as_disputed(self, db, make_booking, now):
        booking = make_booking()
        repo = BookingRepository(db)

        repo.attach_dispute(booking.id, "no-show", disputed_at=now)
        db.commit()
        db.expire_all()

        stored = repo.get_by_id(booking.id)
        assert ensure_utc(stored.disputed_at) == now
        assert stored.is_disputed is True
        assert stored.status == BookingStatus.CONFIRMED.value

    def test_completed_booking_cannot_gain_dispute(self, db, make_booking, now):
        booking = make_booking()
        repo = BookingRepository(db)
        assert repo.complete_if_eligible(booking.id, completed_at=now) is True
        db.commit()

        with pytest.raises(InvalidStatusTransitionException):
            repo.attach_dispute(booking.id, "too late")

        assert repo.get_dispute(booking.id) is None

    def test_completion_between_read_and_mark_refuses_dispute(self, db, make_booking):
        booking = make_booking()
        original_get = BookingRepository.get_by_id

        def read_then_complete(repo, booking_id, load_relationships=True):
            found = original_get(repo, booking_id, load_relationships)
            # The sweep completes the row after the dispute path has read it
            db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(status=BookingStatus.COMPLETED.value, completion_source=CompletionSource.AUTO.value)
                .execution_options(synchronize_session=False)
            )
            return found

        with patch.object(BookingRepository, "get_by_id", read_then_complete):
            with pytest.raises(InvalidStatusTransitionException):
                BookingRepository(db).attach_dispute(booking.id, "no-show")

        assert BookingRepository(db).get_dispute(booking.id) is None
        db.expire_all()
        stored = db.get(Booking, booking.id)
        assert stored.status == BookingStatus.COMPLETED.value
        assert stored.disputed_at is None

    def test_marked_but_unattached_booking_is_not_completed(self, db, make_booking, now):
        booking = make_booking()
        db.execute(
            update(Booking)
            .where(Booking.id == booking.id)
            .values(disputed_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        repo = BookingRepository(db)

        assert repo.get_bookings_for_auto_completion(now, GRACE) == []
        assert repo.complete_if_eligible(booking.id, completed_at=now) is False


class TestUserQueries:
    def test_returns_bookings_for_both_roles(self, db, make_booking, student, tutor, other_student):
        mine = make_booking()
        make_booking(student_id=other_student.id)
        repo = BookingRepository(db)

        student_bookings = repo.get_bookings_for_user(student.id)
        tutor_bookings = repo.get_bookings_for_user(tutor.id)

        assert [b.id for b in student_bookings] == [mine.id]
        assert len(tutor_bookings) == 2

    def test_status_filter(self, db, make_booking, student):
        make_booking(status=BookingStatus.PENDING)
        confirmed = make_booking(status=BookingStatus.CONFIRMED)

        result = BookingRepository(db).get_bookings_for_user(student.id, status=BookingStatus.CONFIRMED)

        assert [b.id for b in result] == [confirmed.id]


class TestPayments:
    def test_create_payment(self, db, make_booking, student):
        booking = make_booking()

        payment = BookingRepository(db).create_payment(booking.id, student.id, Decimal("45.00"))
        db.commit()

        assert payment.method == "STRIPE"
        assert payment.status == "COMPLETED"
        assert db.get(Booking, booking.id).payment.id == payment.id
