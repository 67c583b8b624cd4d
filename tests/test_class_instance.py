from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.errors.booking_errors import ClassInstanceNotFound, ClassNotBookable
from app.errors.capacity_errors import LocationNotFound
from app.errors.class_instance_errors import (
    CapacityBelowEnrolled,
    ClassInPast,
    InvalidCapacity,
    InvalidDateRange,
    InvalidTimeRange,
    RescheduleInPast,
)
from app.models import (
    Booking,
    BookingStatus,
    CancellationReason,
    ClassInstance,
    ClassInstanceEvent,
    ClassInstanceEventType,
    ClassInstanceStatus,
    ClassSchedule,
    Notification,
    NotificationType,
    WaitlistEntry,
    WaitlistRemovalReason,
    WaitlistStatus,
)
from app.services.booking import BookingService
from app.services.class_instance import ClassInstanceService
from app.services.waitlist import WaitlistService
from app.utils.datetime_utils import ensure_utc


def _book(db_session, instance, members):
    return [BookingService(db_session).book_class(m.id, instance.id) for m in members]


class TestUpdateCapacity:
    def test_increase_promotes_waitlist(self, db_session, test_admin, create_class_instance, create_member):
        instance = create_class_instance(capacity=1)
        _book(db_session, instance, [create_member("Holder")])
        waiting = [create_member(f"W{i}") for i in range(2)]
        for member in waiting:
            WaitlistService(db_session).join_waitlist(member.id, instance.id)

        ClassInstanceService(db_session).update_capacity(instance.id, 3, test_admin.id)

        booked = db_session.query(Booking).filter(
            Booking.class_instance_id == instance.id, Booking.status == BookingStatus.BOOKED
        )
        assert booked.count() == 3
        assert db_session.query(WaitlistEntry).filter(WaitlistEntry.status == WaitlistStatus.PROMOTED).count() == 2

    def test_change_is_audited(self, db_session, test_admin, test_class_instance):
        ClassInstanceService(db_session).update_capacity(test_class_instance.id, 5, test_admin.id)

        event = db_session.query(ClassInstanceEvent).one()
        assert event.event_type == ClassInstanceEventType.CAPACITY_CHANGED
        assert event.payload["previous_capacity"] == 2
        assert event.payload["new_capacity"] == 5

    def test_capacity_floor(self, db_session, test_admin, test_class_instance, test_member, test_second_member):
        _book(db_session, test_class_instance, [test_member, test_second_member])

        with pytest.raises(CapacityBelowEnrolled):
            ClassInstanceService(db_session).update_capacity(test_class_instance.id, 1, test_admin.id)

        db_session.refresh(test_class_instance)
        assert test_class_instance.capacity == 2

    def test_decrease_to_booked_count(self, db_session, test_admin, create_class_instance, test_member):
        instance = create_class_instance(capacity=4)
        _book(db_session, instance, [test_member])

        updated = ClassInstanceService(db_session).update_capacity(instance.id, 1, test_admin.id)

        assert updated.capacity == 1

    @pytest.mark.parametrize("capacity", [0, -3])
    def test_invalid_capacity(self, db_session, test_admin, test_class_instance, capacity):
        with pytest.raises(InvalidCapacity):
            ClassInstanceService(db_session).update_capacity(test_class_instance.id, capacity, test_admin.id)

    def test_past_instance(self, db_session, test_admin, create_class_instance):
        instance = create_class_instance(starts_in=-timedelta(days=1))

        with pytest.raises(ClassInPast):
            ClassInstanceService(db_session).update_capacity(instance.id, 5, test_admin.id)

    def test_canceled_instance(self, db_session, test_admin, test_class_instance):
        service = ClassInstanceService(db_session)
        service.cancel_class_instance(test_class_instance.id, test_admin.id)

        with pytest.raises(ClassNotBookable):
            service.update_capacity(test_class_instance.id, 5, test_admin.id)


class TestCancelClassInstance:
    def test_cascade(self, db_session, test_admin, create_class_instance, create_member):
        instance = create_class_instance(capacity=5)
        members = [create_member(f"M{i}") for i in range(5)]
        _book(db_session, instance, members)
        late = create_member("Late")
        entry = WaitlistService(db_session).join_waitlist(late.id, instance.id)

        canceled = ClassInstanceService(db_session).cancel_class_instance(instance.id, test_admin.id, reason="Тренер заболел")

        assert canceled.status == ClassInstanceStatus.CANCELED
        assert canceled.cancellation_reason == "Тренер заболел"
        bookings = db_session.query(Booking).filter(Booking.class_instance_id == instance.id).all()
        assert len(bookings) == 5
        assert all(b.status == BookingStatus.CANCELED for b in bookings)
        assert all(b.cancellation_reason == CancellationReason.CLASS_CANCELED.value for b in bookings)
        db_session.refresh(entry)
        assert entry.status == WaitlistStatus.REMOVED
        assert entry.removal_reason == WaitlistRemovalReason.CLASS_CANCELED.value

    def test_notifications_and_audit(self, db_session, test_admin, test_class_instance, test_member, test_second_member):
        _book(db_session, test_class_instance, [test_member, test_second_member])

        ClassInstanceService(db_session).cancel_class_instance(test_class_instance.id, test_admin.id)

        cancelled = db_session.query(Notification).filter(Notification.type == NotificationType.BOOKING_CANCELLED)
        assert {n.user_id for n in cancelled} == {test_member.user_id, test_second_member.user_id}
        event = db_session.query(ClassInstanceEvent).one()
        assert event.event_type == ClassInstanceEventType.CLASS_CANCELLED

    def test_idempotent(self, db_session, test_admin, test_class_instance, test_member):
        service = ClassInstanceService(db_session)
        _book(db_session, test_class_instance, [test_member])
        service.cancel_class_instance(test_class_instance.id, test_admin.id)

        again = service.cancel_class_instance(test_class_instance.id, test_admin.id)

        assert again.status == ClassInstanceStatus.CANCELED
        assert db_session.query(ClassInstanceEvent).count() == 1

    def test_unknown_instance(self, db_session, test_admin):
        with pytest.raises(ClassInstanceNotFound):
            ClassInstanceService(db_session).cancel_class_instance(9999, test_admin.id)


class TestReschedule:
    def test_reschedule_keeps_bookings(self, db_session, test_admin, test_class_instance, test_member):
        _book(db_session, test_class_instance, [test_member])
        new_start = datetime.now(timezone.utc) + timedelta(days=3)

        instance = ClassInstanceService(db_session).reschedule_class_instance(
            test_class_instance.id, new_start, new_start + timedelta(hours=1), test_admin.id
        )

        assert ensure_utc(instance.start_at) == new_start
        assert instance.class_date == new_start.date()
        booking = db_session.query(Booking).one()
        assert booking.status == BookingStatus.BOOKED
        notification = db_session.query(Notification).order_by(Notification.id.desc()).first()
        assert notification.type == NotificationType.BOOKING_CONFIRMED
        assert notification.payload["rescheduled"] is True
        event = db_session.query(ClassInstanceEvent).one()
        assert event.event_type == ClassInstanceEventType.CLASS_RESCHEDULED

    def test_invalid_time_range(self, db_session, test_admin, test_class_instance):
        new_start = datetime.now(timezone.utc) + timedelta(days=3)

        with pytest.raises(InvalidTimeRange):
            ClassInstanceService(db_session).reschedule_class_instance(
                test_class_instance.id, new_start, new_start, test_admin.id
            )

    def test_reschedule_into_past(self, db_session, test_admin, test_class_instance):
        new_start = datetime.now(timezone.utc) - timedelta(hours=2)

        with pytest.raises(RescheduleInPast):
            ClassInstanceService(db_session).reschedule_class_instance(
                test_class_instance.id, new_start, new_start + timedelta(hours=1), test_admin.id
            )

    def test_reschedule_canceled(self, db_session, test_admin, test_class_instance):
        service = ClassInstanceService(db_session)
        service.cancel_class_instance(test_class_instance.id, test_admin.id)
        new_start = datetime.now(timezone.utc) + timedelta(days=3)

        with pytest.raises(ClassNotBookable):
            service.reschedule_class_instance(
                test_class_instance.id, new_start, new_start + timedelta(hours=1), test_admin.id
            )


class TestRoster:
    def test_roster(self, db_session, create_class_instance, create_member):
        instance = create_class_instance(capacity=2)
        first, second, third = create_member("A"), create_member("B"), create_member("C")
        bookings = _book(db_session, instance, [first, second])
        BookingService(db_session).cancel_booking(bookings[0].id)
        BookingService(db_session).book_class(third.id, instance.id)
        waiting = create_member("D")
        WaitlistService(db_session).join_waitlist(waiting.id, instance.id)

        roster = ClassInstanceService(db_session).get_roster(instance.id)

        assert roster["booked_count"] == 2
        assert {b.member_id for b in roster["bookings"]} == {second.id, third.id}
        assert [e.member_id for e in roster["waitlist"]] == [waiting.id]


class TestGenerateInstances:
    @pytest.fixture
    def weekly_schedule(self, db_session, test_location, today):
        schedule = ClassSchedule(
            location_id=test_location.id,
            class_name="Pilates",
            weekday=today.weekday(),
            start_time=time(18, 0),
            end_time=time(19, 0),
            capacity=12,
            start_date=today,
            is_active=True,
        )
        db_session.add(schedule)
        db_session.commit()
        return schedule

    def test_generates_one_instance_per_week(self, db_session, test_location, weekly_schedule, today):
        created, skipped = ClassInstanceService(db_session).generate_instances(
            test_location.id, today, today + timedelta(days=20)
        )

        assert len(created) == 3
        assert skipped == 0
        assert all(i.capacity == 12 for i in created)
        assert all(i.class_date.weekday() == today.weekday() for i in created)

    def test_second_run_skips_existing(self, db_session, test_location, weekly_schedule, today):
        service = ClassInstanceService(db_session)
        service.generate_instances(test_location.id, today, today + timedelta(days=13))

        created, skipped = service.generate_instances(test_location.id, today, today + timedelta(days=20))

        assert len(created) == 1
        assert skipped == 2
        assert db_session.query(ClassInstance).count() == 3

    def test_range_too_long(self, db_session, test_location, today):
        with pytest.raises(InvalidDateRange):
            ClassInstanceService(db_session).generate_instances(test_location.id, today, today + timedelta(days=90))

    def test_reversed_range(self, db_session, test_location, today):
        with pytest.raises(InvalidDateRange):
            ClassInstanceService(db_session).generate_instances(test_location.id, today, today - timedelta(days=1))

    def test_unknown_location(self, db_session, today):
        with pytest.raises(LocationNotFound):
            ClassInstanceService(db_session).generate_instances(999, today, today + timedelta(days=7))

    def test_schedule_end_date_respected(self, db_session, test_location, weekly_schedule, today):
        weekly_schedule.end_date = today + timedelta(days=7)
        db_session.commit()

        created, _ = ClassInstanceService(db_session).generate_instances(
            test_location.id, today, today + timedelta(days=27)
        )

        assert [i.class_date for i in created] == [today, today + timedelta(days=7)]
