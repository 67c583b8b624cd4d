from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models import Booking, BookingStatus, BookingAttendanceStatus, ClassInstance


def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
    """
    Получение записи по ID
    """
    return db.query(Booking).filter(Booking.id == booking_id).first()


def get_member_booking(db: Session, booking_id: int, member_id: int) -> Optional[Booking]:
    """
    Получение записи участника (чужие записи не находятся)
    """
    return (
        db.query(Booking)
        .filter(Booking.id == booking_id, Booking.member_id == member_id)
        .first()
    )


def get_active_booking(db: Session, member_id: int, instance_id: int) -> Optional[Booking]:
    """
    Активная запись участника на занятие, если есть
    """
    return (
        db.query(Booking)
        .filter(
            Booking.member_id == member_id,
            Booking.class_instance_id == instance_id,
            Booking.status == BookingStatus.BOOKED,
        )
        .first()
    )


def get_booked_bookings(db: Session, instance_id: int) -> List[Booking]:
    """
    Все активные записи на занятие
    """
    return (
        db.query(Booking)
        .filter(
            Booking.class_instance_id == instance_id,
            Booking.status == BookingStatus.BOOKED,
        )
        .order_by(Booking.booked_at.asc(), Booking.id.asc())
        .all()
    )


def get_roster_bookings(db: Session, instance_id: int) -> List[Booking]:
    """
    Состав занятия: все записи, кроме отмененных
    """
    return (
        db.query(Booking)
        .filter(
            Booking.class_instance_id == instance_id,
            Booking.status != BookingStatus.CANCELED,
        )
        .order_by(Booking.booked_at.asc(), Booking.id.asc())
        .all()
    )


def create_booking(
    db: Session,
    member_id: int,
    instance: ClassInstance,
    promoted_from_waitlist_id: Optional[int] = None,
) -> Booking:
    """
    Создание активной записи. Проверки места делает сервис под блокировкой занятия.
    """
    db_booking = Booking(
        member_id=member_id,
        class_instance_id=instance.id,
        location_id=instance.location_id,
        status=BookingStatus.BOOKED,
        attendance_status=BookingAttendanceStatus.NONE,
        booked_at=datetime.now(timezone.utc),
        promoted_from_waitlist_id=promoted_from_waitlist_id,
    )
    db.add(db_booking)
    db.flush()
    return db_booking
