import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crud import booking as booking_crud
from app.crud import class_instance as crud
from app.crud import membership as membership_crud
from app.crud import waitlist as waitlist_crud
from app.database import transactional
from app.errors.booking_errors import (
    AlreadyBooked,
    ClassAlreadyStarted,
    ClassInstanceNotFound,
    ClassNotBookable,
    MemberNotFound,
    NoAccess,
)
from app.errors.waitlist_errors import (
    AlreadyWaitlisted,
    ClassNotFull,
    WaitlistEntryNotActive,
    WaitlistEntryNotFound,
)
from app.models import ClassInstanceStatus, WaitlistEntry, WaitlistRemovalReason, WaitlistStatus
from app.services.access import AccessResolver
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class WaitlistService:
    def __init__(self, db: Session):
        self.db = db
        self.access_resolver = AccessResolver(db)

    # --- Public Methods (Transactional) ---

    def join_waitlist(self, member_id: int, class_instance_id: int) -> WaitlistEntry:
        """
        Ставит участника в очередь на заполненное занятие.
        """
        try:
            with transactional(self.db) as session:
                entry = self._join_waitlist_logic(session, member_id, class_instance_id)
        except IntegrityError as e:
            # Параллельная постановка того же участника, сработал частичный уникальный индекс
            logger.warning(f"Concurrent waitlist join for member {member_id}, instance {class_instance_id}: {e}")
            raise AlreadyWaitlisted("Участник уже в листе ожидания")
        return entry

    def leave_waitlist(
        self,
        entry_id: int,
        member_id: Optional[int] = None,
        removed_by_staff: bool = False,
    ) -> WaitlistEntry:
        """
        Участник покидает очередь. Выход не освобождает мест, продвижение не запускается.
        """
        with transactional(self.db) as session:
            entry = self._leave_waitlist_logic(session, entry_id, member_id, removed_by_staff)
        return entry

    def get_waiting_entries(self, class_instance_id: int) -> List[WaitlistEntry]:
        """Очередь занятия в порядке позиций."""
        return waitlist_crud.get_waiting_entries(self.db, class_instance_id)

    # --- Private Logic Methods (Non-transactional) ---

    def _join_waitlist_logic(self, session: Session, member_id: int, class_instance_id: int) -> WaitlistEntry:
        if not membership_crud.get_member(session, member_id):
            raise MemberNotFound(f"Участник {member_id} не найден")

        instance = crud.get_class_instance_for_update(session, class_instance_id)
        if not instance:
            raise ClassInstanceNotFound(f"Занятие {class_instance_id} не найдено")
        if instance.status != ClassInstanceStatus.SCHEDULED:
            raise ClassNotBookable("Занятие недоступно для записи")
        if ensure_utc(instance.start_at) <= utcnow():
            raise ClassAlreadyStarted("Занятие уже началось")

        if not self.access_resolver.has_access(member_id, instance.location_id):
            raise NoAccess("Нет доступа к локации занятия")

        if booking_crud.get_active_booking(session, member_id, instance.id):
            raise AlreadyBooked("Участник уже записан на это занятие")
        if waitlist_crud.get_waiting_entry(session, member_id, instance.id):
            raise AlreadyWaitlisted("Участник уже в листе ожидания")

        booked = crud.count_booked(session, instance.id)
        if booked < instance.capacity:
            raise ClassNotFull(f"На занятии есть свободные места ({instance.capacity - booked})")

        position = waitlist_crud.get_max_position(session, instance.id) + 1
        entry = waitlist_crud.create_waitlist_entry(session, member_id, instance.id, position)
        logger.info(f"Member {member_id} joined waitlist of instance {instance.id} at position {position}")
        return entry

    def _leave_waitlist_logic(
        self,
        session: Session,
        entry_id: int,
        member_id: Optional[int],
        removed_by_staff: bool,
    ) -> WaitlistEntry:
        entry = waitlist_crud.get_waitlist_entry(session, entry_id)
        if not entry or (member_id is not None and entry.member_id != member_id):
            raise WaitlistEntryNotFound(f"Запись в листе ожидания {entry_id} не найдена")

        # Блокировка занятия сериализует выход с продвижением очереди
        crud.get_class_instance_for_update(session, entry.class_instance_id)
        session.refresh(entry)
        if entry.status != WaitlistStatus.WAITING:
            raise WaitlistEntryNotActive(f"Запись в листе ожидания в статусе {entry.status.value}")

        reason = WaitlistRemovalReason.REMOVED_BY_STAFF if removed_by_staff else WaitlistRemovalReason.LEFT
        self.remove_entry(session, entry, reason)
        logger.info(
            f"Member {entry.member_id} left waitlist of instance {entry.class_instance_id} ({reason.value})"
        )
        return entry

    def remove_entry(self, session: Session, entry: WaitlistEntry, reason: WaitlistRemovalReason) -> WaitlistEntry:
        entry.status = WaitlistStatus.REMOVED
        entry.removed_at = utcnow()
        entry.removal_reason = reason.value
        session.add(entry)
        return entry
