from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import ClassInstance, ClassInstanceStatus, WaitlistEntry, WaitlistStatus


def get_waitlist_entry(db: Session, entry_id: int) -> Optional[WaitlistEntry]:
    """
    Получение записи листа ожидания по ID
    """
    return db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id).first()


def get_waiting_entry(db: Session, member_id: int, instance_id: int) -> Optional[WaitlistEntry]:
    """
    Ожидающая запись участника на занятие, если есть
    """
    return (
        db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.member_id == member_id,
            WaitlistEntry.class_instance_id == instance_id,
            WaitlistEntry.status == WaitlistStatus.WAITING,
        )
        .first()
    )


def get_waiting_entries(db: Session, instance_id: int) -> List[WaitlistEntry]:
    """
    Очередь занятия в порядке позиций (FIFO)
    """
    return (
        db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.class_instance_id == instance_id,
            WaitlistEntry.status == WaitlistStatus.WAITING,
        )
        .order_by(WaitlistEntry.position.asc(), WaitlistEntry.joined_at.asc())
        .all()
    )


def get_max_position(db: Session, instance_id: int) -> int:
    """
    Максимальная выданная позиция по занятию, включая удаленные и продвинутые записи
    """
    return (
        db.query(func.max(WaitlistEntry.position))
        .filter(WaitlistEntry.class_instance_id == instance_id)
        .scalar()
        or 0
    )


def get_member_upcoming_waiting_entries(db: Session, member_id: int, now: datetime) -> List[WaitlistEntry]:
    """
    Ожидающие записи участника на будущие запланированные занятия
    """
    return (
        db.query(WaitlistEntry)
        .join(ClassInstance, ClassInstance.id == WaitlistEntry.class_instance_id)
        .filter(
            WaitlistEntry.member_id == member_id,
            WaitlistEntry.status == WaitlistStatus.WAITING,
            ClassInstance.status == ClassInstanceStatus.SCHEDULED,
            ClassInstance.start_at > now,
        )
        .order_by(ClassInstance.start_at.asc())
        .all()
    )


def create_waitlist_entry(db: Session, member_id: int, instance_id: int, position: int) -> WaitlistEntry:
    """
    Добавление участника в очередь. Позицию выдает сервис под блокировкой занятия.
    """
    db_entry = WaitlistEntry(
        member_id=member_id,
        class_instance_id=instance_id,
        position=position,
        status=WaitlistStatus.WAITING,
        joined_at=datetime.now(timezone.utc),
    )
    db.add(db_entry)
    db.flush()
    return db_entry
