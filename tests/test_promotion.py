from datetime import timedelta
from unittest.mock import patch

import pytest

from app.crud import booking as booking_crud
from app.errors.booking_errors import ClassFull
from app.models import (
    AccessState,
    Booking,
    BookingStatus,
    ClassInstanceStatus,
    MemberSubscription,
    Notification,
    NotificationType,
    WaitlistEntry,
    WaitlistRemovalReason,
    WaitlistStatus,
)
from app.services.booking import BookingService
from app.services.promotion import PromotionEngine
from app.services.waitlist import WaitlistService


def _set_access_state(db_session, member, state):
    db_session.query(MemberSubscription).filter(MemberSubscription.member_id == member.id).update(
        {"access_state": state}
    )
    db_session.commit()


class TestPromotionScenario:
    def test_freed_seat_goes_to_waitlist_head(self, db_session, create_class_instance, create_member):
        """Вместимость 2: A и B записаны, C в очереди; A отменяет - C получает место."""
        instance = create_class_instance(capacity=2)
        member_a, member_b, member_c = create_member("A"), create_member("B"), create_member("C")
        bookings = BookingService(db_session)
        waitlist = WaitlistService(db_session)

        booking_a = bookings.book_class(member_a.id, instance.id)
        bookings.book_class(member_b.id, instance.id)
        with pytest.raises(ClassFull):
            bookings.book_class(member_c.id, instance.id)
        entry_c = waitlist.join_waitlist(member_c.id, instance.id)
        assert entry_c.position == 1

        bookings.cancel_booking(booking_a.id, member_id=member_a.id)

        db_session.refresh(entry_c)
        assert entry_c.status == WaitlistStatus.PROMOTED
        assert entry_c.promoted_at is not None
        booking_c = booking_crud.get_active_booking(db_session, member_c.id, instance.id)
        assert booking_c is not None
        assert booking_c.promoted_from_waitlist_id == entry_c.id
        promoted = db_session.query(Notification).filter(Notification.type == NotificationType.WAITLIST_PROMOTED)
        assert promoted.one().user_id == member_c.user_id


@pytest.fixture
def waitlisted_instance(db_session, create_class_instance, create_member):
    """
    Занятие на 1 место: holder записан, waiting - три участника в очереди.
    Место освобождается без триггера продвижения.
    """
    instance = create_class_instance(capacity=1)
    holder = create_member("Holder")
    booking = BookingService(db_session).book_class(holder.id, instance.id)
    waiting = [create_member(f"W{i}") for i in range(3)]
    for member in waiting:
        WaitlistService(db_session).join_waitlist(member.id, instance.id)

    booking.status = BookingStatus.CANCELED
    db_session.commit()
    return instance, waiting


class TestPromoteFromWaitlist:
    def test_fifo(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance

        result = PromotionEngine(db_session).promote_from_waitlist(instance.id)

        assert result.promoted is True
        assert result.member_id == waiting[0].id
        assert result.remaining == 0

    def test_idempotent(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        engine = PromotionEngine(db_session)

        engine.promote_from_waitlist(instance.id)
        second = engine.promote_from_waitlist(instance.id)

        assert second.promoted is False
        booked = db_session.query(Booking).filter(
            Booking.class_instance_id == instance.id, Booking.status == BookingStatus.BOOKED
        )
        assert booked.count() == 1

    def test_skips_and_removes_ineligible(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        _set_access_state(db_session, waiting[0], AccessState.RESTRICTED)

        result = PromotionEngine(db_session).promote_from_waitlist(instance.id)

        assert result.promoted is True
        assert result.member_id == waiting[1].id
        skipped = db_session.query(WaitlistEntry).filter(WaitlistEntry.member_id == waiting[0].id).one()
        assert result.removed_entry_ids == [skipped.id]
        assert skipped.status == WaitlistStatus.REMOVED
        assert skipped.removal_reason == WaitlistRemovalReason.ACCESS_LOST.value

    def test_nobody_eligible(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        for member in waiting:
            _set_access_state(db_session, member, AccessState.INACTIVE)

        result = PromotionEngine(db_session).promote_from_waitlist(instance.id)

        assert result.promoted is False
        assert len(result.removed_entry_ids) == 3
        assert result.remaining == 1

    def test_candidate_with_existing_booking(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        existing = booking_crud.create_booking(db_session, waiting[0].id, instance)
        db_session.commit()
        # Место снова свободно для проверки
        instance.capacity = 2
        db_session.commit()

        result = PromotionEngine(db_session).promote_from_waitlist(instance.id)

        assert result.promoted is True
        assert result.existing is True
        assert result.booking_id == existing.id
        count = db_session.query(Booking).filter(Booking.member_id == waiting[0].id).count()
        assert count == 1

    def test_no_free_seat(self, db_session, create_class_instance, test_member, test_second_member):
        instance = create_class_instance(capacity=1)
        BookingService(db_session).book_class(test_member.id, instance.id)
        WaitlistService(db_session).join_waitlist(test_second_member.id, instance.id)

        result = PromotionEngine(db_session).promote_from_waitlist(instance.id)

        assert result.promoted is False
        assert result.remaining == 0

    def test_canceled_instance_is_noop(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        instance.status = ClassInstanceStatus.CANCELED
        db_session.commit()

        result = PromotionEngine(db_session).promote_from_waitlist(instance.id)

        assert result.promoted is False
        assert result.reason == "class_not_bookable"

    def test_started_instance_is_noop(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        instance.start_at = instance.start_at - timedelta(days=2)
        db_session.commit()

        assert PromotionEngine(db_session).promote_from_waitlist(instance.id).promoted is False


class TestFillOpenSeats:
    def test_fills_every_free_seat(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        instance.capacity = 3
        db_session.commit()

        results = PromotionEngine(db_session).fill_open_seats(instance.id)

        assert [r.member_id for r in results if r.promoted] == [w.id for w in waiting]
        assert len(results) == 3

    def test_stops_when_queue_is_empty(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        instance.capacity = 10
        db_session.commit()

        results = PromotionEngine(db_session).fill_open_seats(instance.id)

        assert sum(1 for r in results if r.promoted) == 3
        assert results[-1].promoted is False


class TestSweep:
    def test_sweep_fills_open_seats(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance

        result = PromotionEngine(db_session).sweep()

        assert result == {"scanned": 1, "promoted": 1}

    def test_sweep_ignores_past_and_full_instances(self, db_session, waitlisted_instance):
        instance, waiting = waitlisted_instance
        instance.start_at = instance.start_at - timedelta(days=2)
        db_session.commit()

        assert PromotionEngine(db_session).sweep() == {"scanned": 0, "promoted": 0}

    def test_sweep_continues_after_failure(self, db_session, waitlisted_instance, create_class_instance, create_member):
        first, _ = waitlisted_instance
        second = create_class_instance(capacity=1, starts_in=timedelta(days=2))
        holder = create_member("Holder2")
        booking = BookingService(db_session).book_class(holder.id, second.id)
        WaitlistService(db_session).join_waitlist(create_member("Late").id, second.id)
        booking.status = BookingStatus.CANCELED
        db_session.commit()

        engine = PromotionEngine(db_session)
        original = engine.fill_open_seats

        def flaky(instance_id):
            if instance_id == first.id:
                raise RuntimeError("database hiccup")
            return original(instance_id)

        with patch.object(engine, "fill_open_seats", side_effect=flaky):
            result = engine.sweep()

        assert result == {"scanned": 2, "promoted": 1}
