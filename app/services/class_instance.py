import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import config
from app.crud import booking as booking_crud
from app.crud import class_instance as crud
from app.crud import membership as membership_crud
from app.crud import waitlist as waitlist_crud
from app.database import transactional
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
    BookingStatus,
    CancellationReason,
    ClassInstance,
    ClassInstanceEventType,
    ClassInstanceStatus,
    NotificationType,
    WaitlistRemovalReason,
)
from app.services.audit import AuditLog
from app.services.effects import PostCommitEffects
from app.services.notifications import NotificationDispatcher
from app.services.promotion import PromotionEngine
from app.services.waitlist import WaitlistService
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class ClassInstanceService:
    def __init__(self, db: Session):
        self.db = db
        self.promotion_engine = PromotionEngine(db)
        self.waitlist_service = WaitlistService(db)
        self.notifications = NotificationDispatcher(db)
        self.audit_log = AuditLog(db)

    # --- Public Methods (Transactional) ---

    def update_capacity(self, class_instance_id: int, new_capacity: int, changed_by_id: int) -> ClassInstance:
        """
        Изменение вместимости. Уменьшать ниже числа записанных нельзя,
        при увеличении новые места сразу получает очередь.
        """
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            instance = self._update_capacity_logic(session, class_instance_id, new_capacity, changed_by_id, effects)
        effects.run()
        return instance

    def cancel_class_instance(
        self,
        class_instance_id: int,
        canceled_by_id: int,
        reason: Optional[str] = None,
    ) -> ClassInstance:
        """
        Отмена занятия целиком: все записи отменяются, очередь закрывается.
        Повторная отмена ничего не делает.
        """
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            instance = self._cancel_class_instance_logic(session, class_instance_id, canceled_by_id, reason, effects)
        effects.run()
        return instance

    def reschedule_class_instance(
        self,
        class_instance_id: int,
        start_at: datetime,
        end_at: datetime,
        rescheduled_by_id: int,
    ) -> ClassInstance:
        """
        Перенос занятия. Записи и очередь сохраняются, участников уведомляем.
        """
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            instance = self._reschedule_logic(session, class_instance_id, start_at, end_at, rescheduled_by_id, effects)
        effects.run()
        return instance

    def get_roster(self, class_instance_id: int) -> dict:
        instance = crud.get_class_instance(self.db, class_instance_id)
        if not instance:
            raise ClassInstanceNotFound(f"Занятие {class_instance_id} не найдено")

        bookings = booking_crud.get_roster_bookings(self.db, instance.id)
        return {
            "class_instance": instance,
            "booked_count": sum(1 for b in bookings if b.status == BookingStatus.BOOKED),
            "bookings": bookings,
            "waitlist": self.waitlist_service.get_waiting_entries(instance.id),
        }

    def generate_instances(self, location_id: int, date_from: date, date_to: date) -> Tuple[List[ClassInstance], int]:
        """
        Генерация занятий по недельному расписанию локации на период.
        Уже созданные занятия пропускаются, повторный вызов безопасен.
        """
        with transactional(self.db) as session:
            created, skipped = self._generate_instances_logic(session, location_id, date_from, date_to)
        logger.info(
            f"Generated {len(created)} class instance(s) for location {location_id} "
            f"{date_from}..{date_to}, skipped {skipped}"
        )
        return created, skipped

    # --- Private Logic Methods (Non-transactional) ---

    def _update_capacity_logic(
        self,
        session: Session,
        class_instance_id: int,
        new_capacity: int,
        changed_by_id: int,
        effects: PostCommitEffects,
    ) -> ClassInstance:
        if new_capacity is None or new_capacity < 1:
            raise InvalidCapacity("Вместимость должна быть не меньше 1")

        instance = self._get_locked_instance(session, class_instance_id)
        if instance.status != ClassInstanceStatus.SCHEDULED:
            raise ClassNotBookable("Занятие нельзя изменить в текущем статусе")
        if ensure_utc(instance.end_at) < utcnow():
            raise ClassInPast("Занятие уже прошло")

        booked = crud.count_booked(session, instance.id)
        if new_capacity < booked:
            raise CapacityBelowEnrolled(f"Записано {booked} участников, вместимость {new_capacity} меньше")

        previous_capacity = instance.capacity
        instance.capacity = new_capacity
        session.add(instance)
        logger.info(f"Capacity of instance {instance.id} changed {previous_capacity} -> {new_capacity}")

        effects.add(
            "audit_capacity_changed",
            self.audit_log.record,
            instance.id,
            changed_by_id,
            ClassInstanceEventType.CAPACITY_CHANGED,
            {"previous_capacity": previous_capacity, "new_capacity": new_capacity, "booked": booked},
        )
        if new_capacity > previous_capacity:
            effects.add("fill_open_seats", self.promotion_engine.fill_open_seats, instance.id)
        return instance

    def _cancel_class_instance_logic(
        self,
        session: Session,
        class_instance_id: int,
        canceled_by_id: int,
        reason: Optional[str],
        effects: PostCommitEffects,
    ) -> ClassInstance:
        instance = self._get_locked_instance(session, class_instance_id)
        if instance.status == ClassInstanceStatus.CANCELED:
            logger.info(f"Instance {instance.id} is already canceled")
            return instance
        if instance.status != ClassInstanceStatus.SCHEDULED:
            raise ClassNotBookable("Проведенное занятие нельзя отменить")

        now = utcnow()
        instance.status = ClassInstanceStatus.CANCELED
        instance.canceled_at = now
        instance.cancellation_reason = reason
        session.add(instance)

        bookings = booking_crud.get_booked_bookings(session, instance.id)
        for booking in bookings:
            booking.status = BookingStatus.CANCELED
            booking.canceled_at = now
            booking.cancellation_reason = CancellationReason.CLASS_CANCELED.value
            session.add(booking)

        entries = waitlist_crud.get_waiting_entries(session, instance.id)
        for entry in entries:
            self.waitlist_service.remove_entry(session, entry, WaitlistRemovalReason.CLASS_CANCELED)

        logger.info(
            f"Instance {instance.id} canceled by user {canceled_by_id}: "
            f"{len(bookings)} booking(s) canceled, {len(entries)} waitlist entr(ies) removed"
        )

        effects.add(
            "audit_class_cancelled",
            self.audit_log.record,
            instance.id,
            canceled_by_id,
            ClassInstanceEventType.CLASS_CANCELLED,
            {
                "reason": reason,
                "canceled_booking_ids": [b.id for b in bookings],
                "removed_waitlist_entry_ids": [e.id for e in entries],
            },
        )
        for booking in bookings:
            effects.add(
                "notify_class_cancelled",
                self.notifications.enqueue_for_member,
                booking.member_id,
                NotificationType.BOOKING_CANCELLED,
                {
                    "booking_id": booking.id,
                    "class_instance_id": instance.id,
                    "class_name": instance.class_name,
                    "start_time": ensure_utc(instance.start_at).isoformat(),
                    "reason": CancellationReason.CLASS_CANCELED.value,
                },
            )
        return instance

    def _reschedule_logic(
        self,
        session: Session,
        class_instance_id: int,
        start_at: datetime,
        end_at: datetime,
        rescheduled_by_id: int,
        effects: PostCommitEffects,
    ) -> ClassInstance:
        start_at = ensure_utc(start_at)
        end_at = ensure_utc(end_at)

        instance = self._get_locked_instance(session, class_instance_id)
        if instance.status != ClassInstanceStatus.SCHEDULED:
            raise ClassNotBookable("Занятие нельзя перенести в текущем статусе")
        if end_at <= start_at:
            raise InvalidTimeRange("Время окончания должно быть позже начала")
        if start_at <= utcnow():
            raise RescheduleInPast("Нельзя перенести занятие в прошлое")

        previous = {
            "start_at": ensure_utc(instance.start_at).isoformat(),
            "end_at": ensure_utc(instance.end_at).isoformat(),
        }
        instance.start_at = start_at
        instance.end_at = end_at
        instance.class_date = start_at.date()
        session.add(instance)
        logger.info(f"Instance {instance.id} rescheduled from {previous['start_at']} to {start_at.isoformat()}")

        effects.add(
            "audit_class_rescheduled",
            self.audit_log.record,
            instance.id,
            rescheduled_by_id,
            ClassInstanceEventType.CLASS_RESCHEDULED,
            {
                "previous": previous,
                "current": {"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
            },
        )
        for booking in booking_crud.get_booked_bookings(session, instance.id):
            effects.add(
                "notify_class_rescheduled",
                self.notifications.enqueue_for_member,
                booking.member_id,
                NotificationType.BOOKING_CONFIRMED,
                {
                    "booking_id": booking.id,
                    "class_instance_id": instance.id,
                    "class_name": instance.class_name,
                    "start_time": start_at.isoformat(),
                    "end_time": end_at.isoformat(),
                    "rescheduled": True,
                },
            )
        return instance

    def _generate_instances_logic(
        self,
        session: Session,
        location_id: int,
        date_from: date,
        date_to: date,
    ) -> Tuple[List[ClassInstance], int]:
        if date_to < date_from or (date_to - date_from).days + 1 > config.MAX_GENERATION_RANGE_DAYS:
            raise InvalidDateRange(
                f"Период генерации должен быть от 1 до {config.MAX_GENERATION_RANGE_DAYS} дней"
            )
        if not membership_crud.get_location(session, location_id):
            raise LocationNotFound(f"Локация {location_id} не найдена")

        schedules = crud.get_schedules_for_generation(session, location_id, date_from, date_to)
        existing = crud.get_generated_keys(session, [s.id for s in schedules], date_from, date_to)

        created = []
        skipped = 0
        day = date_from
        while day <= date_to:
            for schedule in schedules:
                if day.weekday() != schedule.weekday:
                    continue
                if day < schedule.start_date or (schedule.end_date and day > schedule.end_date):
                    continue
                if (schedule.id, day) in existing:
                    skipped += 1
                    continue

                start_at = self._combine_utc(day, schedule.start_time)
                end_at = self._combine_utc(day, schedule.end_time)
                if end_at <= start_at:
                    # Занятие заканчивается после полуночи
                    end_at += timedelta(days=1)

                created.append(
                    crud.create_class_instance(
                        session,
                        schedule_id=schedule.id,
                        location_id=schedule.location_id,
                        instructor_id=schedule.instructor_id,
                        class_name=schedule.class_name,
                        start_at=start_at,
                        end_at=end_at,
                        capacity=schedule.capacity,
                        late_cancel_cutoff_minutes=schedule.late_cancel_cutoff_minutes,
                    )
                )
            day += timedelta(days=1)
        return created, skipped

    # --- Helpers ---

    @staticmethod
    def _get_locked_instance(session: Session, class_instance_id: int) -> ClassInstance:
        instance = crud.get_class_instance_for_update(session, class_instance_id)
        if not instance:
            raise ClassInstanceNotFound(f"Занятие {class_instance_id} не найдено")
        return instance

    @staticmethod
    def _combine_utc(day: date, moment: time) -> datetime:
        return datetime.combine(day, moment).replace(tzinfo=timezone.utc)
