from datetime import date, datetime
from typing import List, Optional, Set, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.models import (
    Booking,
    BookingStatus,
    ClassInstance,
    ClassInstanceStatus,
    ClassSchedule,
    WaitlistEntry,
    WaitlistStatus,
)


def get_class_instance(db: Session, instance_id: int) -> Optional[ClassInstance]:
    """
    Получение занятия по ID
    """
    return db.query(ClassInstance).filter(ClassInstance.id == instance_id).first()


def get_class_instance_for_update(db: Session, instance_id: int) -> Optional[ClassInstance]:
    """
    Получение занятия с блокировкой строки (SELECT ... FOR UPDATE).

    Все операции, которые читают число записей или позиции в листе ожидания,
    сначала берут эту блокировку, поэтому они выполняются по одной на занятие.
    """
    return (
        db.query(ClassInstance)
        .filter(ClassInstance.id == instance_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def count_booked(db: Session, instance_id: int) -> int:
    """
    Количество активных записей (status = booked) на занятие
    """
    return (
        db.query(func.count(Booking.id))
        .filter(
            Booking.class_instance_id == instance_id,
            Booking.status == BookingStatus.BOOKED,
        )
        .scalar()
        or 0
    )


def get_instances_with_open_seats(db: Session, now: datetime, limit: int) -> List[ClassInstance]:
    """
    Будущие запланированные занятия, где есть свободные места и кто-то ждет в очереди.
    """
    booked_subquery = (
        db.query(
            Booking.class_instance_id.label("instance_id"),
            func.count(Booking.id).label("booked_count"),
        )
        .filter(Booking.status == BookingStatus.BOOKED)
        .group_by(Booking.class_instance_id)
        .subquery()
    )
    has_waiting = (
        db.query(WaitlistEntry.id)
        .filter(
            WaitlistEntry.class_instance_id == ClassInstance.id,
            WaitlistEntry.status == WaitlistStatus.WAITING,
        )
        .exists()
    )

    return (
        db.query(ClassInstance)
        .outerjoin(booked_subquery, booked_subquery.c.instance_id == ClassInstance.id)
        .filter(
            ClassInstance.status == ClassInstanceStatus.SCHEDULED,
            ClassInstance.start_at > now,
            func.coalesce(booked_subquery.c.booked_count, 0) < ClassInstance.capacity,
            has_waiting,
        )
        .order_by(ClassInstance.start_at.asc(), ClassInstance.id.asc())
        .limit(limit)
        .all()
    )


def get_schedules_for_generation(
    db: Session,
    location_id: int,
    date_from: date,
    date_to: date,
) -> List[ClassSchedule]:
    """
    Активные расписания локации, которые действуют хотя бы часть периода
    """
    return (
        db.query(ClassSchedule)
        .filter(
            and_(
                ClassSchedule.location_id == location_id,
                ClassSchedule.is_active.is_(True),
                ClassSchedule.start_date <= date_to,
                or_(ClassSchedule.end_date.is_(None), ClassSchedule.end_date >= date_from),
            )
        )
        .order_by(ClassSchedule.id.asc())
        .all()
    )


def get_generated_keys(
    db: Session,
    schedule_ids: List[int],
    date_from: date,
    date_to: date,
) -> Set[Tuple[int, date]]:
    """
    Пары (schedule_id, class_date), для которых занятия уже созданы
    """
    if not schedule_ids:
        return set()
    rows = (
        db.query(ClassInstance.schedule_id, ClassInstance.class_date)
        .filter(
            ClassInstance.schedule_id.in_(schedule_ids),
            ClassInstance.class_date >= date_from,
            ClassInstance.class_date <= date_to,
        )
        .all()
    )
    return {(row.schedule_id, row.class_date) for row in rows}


def create_class_instance(
    db: Session,
    *,
    location_id: int,
    class_name: str,
    start_at: datetime,
    end_at: datetime,
    capacity: int,
    schedule_id: Optional[int] = None,
    instructor_id: Optional[int] = None,
    late_cancel_cutoff_minutes: Optional[int] = None,
) -> ClassInstance:
    """
    Создание занятия. Commit делает сервис.
    """
    db_instance = ClassInstance(
        schedule_id=schedule_id,
        location_id=location_id,
        instructor_id=instructor_id,
        class_name=class_name,
        class_date=start_at.date(),
        start_at=start_at,
        end_at=end_at,
        capacity=capacity,
        status=ClassInstanceStatus.SCHEDULED,
        late_cancel_cutoff_minutes=late_cancel_cutoff_minutes,
    )
    db.add(db_instance)
    db.flush()
    return db_instance
