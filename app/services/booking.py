import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import config
from app.crud import booking as booking_crud
from app.crud import class_instance as crud
from app.crud import membership as membership_crud
from app.database import transactional
from app.errors.booking_errors import (
    AlreadyBooked,
    AttendanceWindowClosed,
    BookingNotActive,
    BookingNotFound,
    ClassAlreadyStarted,
    ClassCanceled,
    ClassFull,
    ClassInstanceNotFound,
    ClassNotBookable,
    MemberNotFound,
    NoAccess,
    TooEarly,
)
from app.models import (
    Booking,
    BookingAttendanceStatus,
    BookingStatus,
    CancellationReason,
    ClassInstance,
    ClassInstanceEventType,
    ClassInstanceStatus,
    NotificationType,
)
from app.services.access import AccessResolver
from app.services.audit import AuditLog
from app.services.effects import PostCommitEffects
from app.services.notifications import NotificationDispatcher
from app.services.promotion import PromotionEngine
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

# Итоговый статус записи по отметке посещения
ATTENDANCE_TO_BOOKING_STATUS = {
    BookingAttendanceStatus.CHECKED_IN: BookingStatus.ATTENDED,
    BookingAttendanceStatus.NO_SHOW: BookingStatus.NO_SHOW,
    BookingAttendanceStatus.EXCUSED: BookingStatus.NO_SHOW,
}


class BookingService:
    def __init__(self, db: Session):
        self.db = db
        self.access_resolver = AccessResolver(db)
        self.promotion_engine = PromotionEngine(db)
        self.notifications = NotificationDispatcher(db)
        self.audit_log = AuditLog(db)

    # --- Public Methods (Transactional) ---

    def book_class(self, member_id: int, class_instance_id: int) -> Booking:
        """
        Запись участника на занятие. Проверка мест и создание записи идут
        под блокировкой занятия, поэтому вместимость не превышается.
        """
        effects = PostCommitEffects()
        try:
            with transactional(self.db) as session:
                booking = self._book_class_logic(session, member_id, class_instance_id, effects)
        except IntegrityError as e:
            logger.warning(f"Concurrent booking for member {member_id}, instance {class_instance_id}: {e}")
            raise AlreadyBooked("Участник уже записан на это занятие")
        effects.run()
        return booking

    def cancel_booking(self, booking_id: int, member_id: Optional[int] = None) -> dict:
        """
        Отмена записи участником. Поздняя отмена помечается, но разрешена
        до начала занятия. Освободившееся место уходит следующему в очереди.
        """
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            result = self._cancel_booking_logic(session, booking_id, member_id, effects)
        effects.run()
        return result

    def remove_member(self, booking_id: int, removed_by_id: int, class_instance_id: Optional[int] = None) -> Booking:
        """
        Удаление участника из состава занятия персоналом.
        """
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            booking = self._remove_member_logic(session, booking_id, removed_by_id, class_instance_id, effects)
        effects.run()
        return booking

    def mark_attendance(
        self,
        booking_id: int,
        attendance_status: BookingAttendanceStatus,
        marked_by_id: int,
        class_instance_id: Optional[int] = None,
    ) -> Booking:
        """
        Отметка посещения. Допустима только в окне вокруг времени занятия.
        """
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            booking = self._mark_attendance_logic(
                session, booking_id, attendance_status, marked_by_id, class_instance_id, effects
            )
        effects.run()
        return booking

    # --- Private Logic Methods (Non-transactional) ---

    def _book_class_logic(
        self,
        session: Session,
        member_id: int,
        class_instance_id: int,
        effects: PostCommitEffects,
    ) -> Booking:
        if not membership_crud.get_member(session, member_id):
            raise MemberNotFound(f"Участник {member_id} не найден")

        instance = crud.get_class_instance_for_update(session, class_instance_id)
        if not instance:
            raise ClassInstanceNotFound(f"Занятие {class_instance_id} не найдено")

        if not self.access_resolver.has_access(member_id, instance.location_id):
            raise NoAccess("Нет доступа к локации занятия")
        if instance.status != ClassInstanceStatus.SCHEDULED:
            raise ClassNotBookable("Занятие недоступно для записи")
        if ensure_utc(instance.start_at) <= utcnow():
            raise ClassAlreadyStarted("Занятие уже началось")
        if booking_crud.get_active_booking(session, member_id, instance.id):
            raise AlreadyBooked("Участник уже записан на это занятие")

        booked = crud.count_booked(session, instance.id)
        if booked >= instance.capacity:
            logger.info(f"Instance {instance.id} is full ({booked}/{instance.capacity}), member {member_id} rejected")
            raise ClassFull("Свободных мест нет")

        booking = booking_crud.create_booking(session, member_id, instance)
        logger.info(f"Member {member_id} booked instance {instance.id} ({booked + 1}/{instance.capacity})")

        effects.add(
            "notify_booking_confirmed",
            self.notifications.enqueue_for_member,
            member_id,
            NotificationType.BOOKING_CONFIRMED,
            self._notification_payload(instance, booking),
        )
        return booking

    def _cancel_booking_logic(
        self,
        session: Session,
        booking_id: int,
        member_id: Optional[int],
        effects: PostCommitEffects,
    ) -> dict:
        if member_id is not None:
            booking = booking_crud.get_member_booking(session, booking_id, member_id)
        else:
            booking = booking_crud.get_booking(session, booking_id)
        if not booking:
            raise BookingNotFound(f"Запись {booking_id} не найдена")

        instance = crud.get_class_instance_for_update(session, booking.class_instance_id)
        session.refresh(booking)
        if booking.status != BookingStatus.BOOKED:
            raise BookingNotActive(f"Запись в статусе {booking.status.value}")

        now = utcnow()
        start_at = ensure_utc(instance.start_at)
        if now >= start_at:
            raise ClassAlreadyStarted("Занятие уже началось, отмена невозможна")

        late = self._is_late_cancellation(instance, now)
        booking.status = BookingStatus.CANCELED
        booking.canceled_at = now
        booking.cancellation_reason = CancellationReason.LATE_CANCEL.value if late else None
        session.add(booking)

        logger.info(
            f"Booking {booking.id} of member {booking.member_id} canceled "
            f"({'late' if late else 'in time'}), instance {instance.id}"
        )

        effects.add("promote_from_waitlist", self.promotion_engine.promote_from_waitlist, instance.id)
        effects.add(
            "notify_booking_cancelled",
            self.notifications.enqueue_for_member,
            booking.member_id,
            NotificationType.BOOKING_CANCELLED,
            {**self._notification_payload(instance, booking), "late": late},
        )
        return {"booking_id": booking.id, "status": booking.status, "late": late}

    def _remove_member_logic(
        self,
        session: Session,
        booking_id: int,
        removed_by_id: int,
        class_instance_id: Optional[int],
        effects: PostCommitEffects,
    ) -> Booking:
        booking = booking_crud.get_booking(session, booking_id)
        if not booking or (class_instance_id is not None and booking.class_instance_id != class_instance_id):
            raise BookingNotFound(f"Запись {booking_id} не найдена")

        instance = crud.get_class_instance_for_update(session, booking.class_instance_id)
        session.refresh(booking)
        if booking.status != BookingStatus.BOOKED:
            raise BookingNotActive(f"Запись в статусе {booking.status.value}")

        booking.status = BookingStatus.CANCELED
        booking.canceled_at = utcnow()
        booking.cancellation_reason = CancellationReason.REMOVED_BY_STAFF.value
        session.add(booking)
        logger.info(f"Booking {booking.id} removed from instance {instance.id} by user {removed_by_id}")

        effects.add(
            "audit_member_removed",
            self.audit_log.record,
            instance.id,
            removed_by_id,
            ClassInstanceEventType.MEMBER_REMOVED,
            {"booking_id": booking.id, "member_id": booking.member_id},
        )
        effects.add("promote_from_waitlist", self.promotion_engine.promote_from_waitlist, instance.id)
        effects.add(
            "notify_booking_cancelled",
            self.notifications.enqueue_for_member,
            booking.member_id,
            NotificationType.BOOKING_CANCELLED,
            {**self._notification_payload(instance, booking), "reason": CancellationReason.REMOVED_BY_STAFF.value},
        )
        return booking

    def _mark_attendance_logic(
        self,
        session: Session,
        booking_id: int,
        attendance_status: BookingAttendanceStatus,
        marked_by_id: int,
        class_instance_id: Optional[int],
        effects: PostCommitEffects,
    ) -> Booking:
        if attendance_status not in ATTENDANCE_TO_BOOKING_STATUS:
            raise ValueError(f"Attendance status '{attendance_status}' cannot be set manually")

        booking = booking_crud.get_booking(session, booking_id)
        if not booking or (class_instance_id is not None and booking.class_instance_id != class_instance_id):
            raise BookingNotFound(f"Запись {booking_id} не найдена")

        instance = crud.get_class_instance_for_update(session, booking.class_instance_id)
        session.refresh(booking)
        if instance.status == ClassInstanceStatus.CANCELED:
            raise ClassCanceled("Занятие отменено")
        if booking.status != BookingStatus.BOOKED:
            raise BookingNotActive(f"Запись в статусе {booking.status.value}")

        now = utcnow()
        window_opens = ensure_utc(instance.start_at) - timedelta(minutes=config.ATTENDANCE_EARLY_WINDOW_MINUTES)
        window_closes = ensure_utc(instance.end_at) + timedelta(minutes=config.ATTENDANCE_LATE_WINDOW_MINUTES)
        if now < window_opens:
            raise TooEarly("Отметка посещения еще недоступна")
        if now > window_closes:
            raise AttendanceWindowClosed("Окно отметки посещения закрыто")

        booking.attendance_status = attendance_status
        booking.status = ATTENDANCE_TO_BOOKING_STATUS[attendance_status]
        booking.attendance_marked_at = now
        booking.attendance_marked_by_id = marked_by_id
        session.add(booking)
        logger.info(f"Attendance {attendance_status.value} marked for booking {booking.id} by user {marked_by_id}")

        effects.add(
            "audit_roster_edited",
            self.audit_log.record,
            instance.id,
            marked_by_id,
            ClassInstanceEventType.ROSTER_EDITED,
            {
                "action": "MARK_ATTENDANCE",
                "booking_id": booking.id,
                "member_id": booking.member_id,
                "attendance_status": attendance_status.value,
            },
        )
        return booking

    # --- Helpers ---

    @staticmethod
    def _is_late_cancellation(instance: ClassInstance, now) -> bool:
        cutoff = instance.late_cancel_cutoff_minutes
        if cutoff is None:
            cutoff = config.LATE_CANCEL_CUTOFF_MINUTES
        return now > ensure_utc(instance.start_at) - timedelta(minutes=cutoff)

    @staticmethod
    def _notification_payload(instance: ClassInstance, booking: Booking) -> dict:
        return {
            "booking_id": booking.id,
            "class_instance_id": instance.id,
            "class_name": instance.class_name,
            "start_time": ensure_utc(instance.start_at).isoformat(),
        }
