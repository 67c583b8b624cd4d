import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import config
from app.crud import booking as booking_crud
from app.crud import class_instance as crud
from app.crud import waitlist as waitlist_crud
from app.database import transactional
from app.errors.booking_errors import ClassInstanceNotFound
from app.models import ClassInstanceStatus, NotificationType, WaitlistRemovalReason, WaitlistStatus
from app.schemas.waitlist import PromotionResult
from app.services.access import AccessResolver
from app.services.effects import PostCommitEffects
from app.services.notifications import NotificationDispatcher
from app.services.waitlist import WaitlistService
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class PromotionEngine:
    """
    Moves members from the waitlist into free seats in strict FIFO order.

    Every promotion of a single seat runs in its own transaction under the
    class instance row lock, so it can be triggered from any place that
    frees a seat and repeated safely: when nothing is free it does nothing.
    """

    def __init__(self, db: Session):
        self.db = db
        self.access_resolver = AccessResolver(db)
        self.waitlist_service = WaitlistService(db)
        self.notifications = NotificationDispatcher(db)

    # --- Public Methods (Transactional) ---

    def promote_from_waitlist(self, class_instance_id: int) -> PromotionResult:
        """Fills at most one free seat from the head of the waitlist."""
        effects = PostCommitEffects()
        with transactional(self.db) as session:
            result = self._promote_one_logic(session, class_instance_id, effects)
        effects.run()
        return result

    def fill_open_seats(self, class_instance_id: int) -> List[PromotionResult]:
        """
        Repeats single-seat promotion until the seats run out or nobody
        eligible is left in the queue.
        """
        results = []
        while True:
            result = self.promote_from_waitlist(class_instance_id)
            results.append(result)
            if not result.promoted or result.remaining <= 0:
                break
        promoted = sum(1 for r in results if r.promoted and not r.existing)
        if promoted:
            logger.info(f"Filled {promoted} seat(s) of instance {class_instance_id} from waitlist")
        return results

    def sweep(self, limit: Optional[int] = None) -> dict:
        """
        Periodic safety net: fills free seats of upcoming classes where
        somebody is still waiting, e.g. after a failed post-commit promotion.
        """
        if limit is None:
            limit = config.PROMOTION_SWEEP_LIMIT
        instance_ids = [i.id for i in crud.get_instances_with_open_seats(self.db, utcnow(), limit)]

        promoted = 0
        for instance_id in instance_ids:
            try:
                results = self.fill_open_seats(instance_id)
            except Exception as e:
                logger.exception(f"Waitlist sweep failed for instance {instance_id}: {e}")
                continue
            promoted += sum(1 for r in results if r.promoted and not r.existing)

        logger.info(f"Waitlist sweep finished: scanned={len(instance_ids)}, promoted={promoted}")
        return {"scanned": len(instance_ids), "promoted": promoted}

    # --- Private Logic Methods (Non-transactional) ---

    def _promote_one_logic(
        self,
        session: Session,
        class_instance_id: int,
        effects: PostCommitEffects,
    ) -> PromotionResult:
        instance = crud.get_class_instance_for_update(session, class_instance_id)
        if not instance:
            raise ClassInstanceNotFound(f"Занятие {class_instance_id} не найдено")

        if instance.status != ClassInstanceStatus.SCHEDULED:
            return PromotionResult(promoted=False, reason="class_not_bookable")
        now = utcnow()
        if ensure_utc(instance.start_at) <= now:
            return PromotionResult(promoted=False, reason="class_already_started")

        remaining = instance.capacity - crud.count_booked(session, instance.id)
        if remaining <= 0:
            return PromotionResult(promoted=False, remaining=0, reason="class_full")

        removed_entry_ids = []
        for entry in waitlist_crud.get_waiting_entries(session, instance.id):
            if not self.access_resolver.has_access(entry.member_id, instance.location_id):
                self.waitlist_service.remove_entry(session, entry, WaitlistRemovalReason.ACCESS_LOST)
                removed_entry_ids.append(entry.id)
                logger.info(
                    f"Waitlist entry {entry.id} of member {entry.member_id} removed: access lost"
                )
                continue

            entry.status = WaitlistStatus.PROMOTED
            entry.promoted_at = now
            session.add(entry)

            existing = booking_crud.get_active_booking(session, entry.member_id, instance.id)
            if existing:
                # Участник успел записаться сам, место не тратим
                logger.info(
                    f"Member {entry.member_id} already booked on instance {instance.id}, "
                    f"waitlist entry {entry.id} closed"
                )
                return PromotionResult(
                    promoted=True,
                    existing=True,
                    member_id=entry.member_id,
                    booking_id=existing.id,
                    removed_entry_ids=removed_entry_ids,
                    remaining=remaining,
                )

            booking = booking_crud.create_booking(
                session, entry.member_id, instance, promoted_from_waitlist_id=entry.id
            )
            logger.info(
                f"Member {entry.member_id} promoted from waitlist position {entry.position} "
                f"to booking {booking.id} on instance {instance.id}"
            )
            effects.add(
                "notify_waitlist_promoted",
                self.notifications.enqueue_for_member,
                entry.member_id,
                NotificationType.WAITLIST_PROMOTED,
                {
                    "class_instance_id": instance.id,
                    "booking_id": booking.id,
                    "class_name": instance.class_name,
                    "start_time": ensure_utc(instance.start_at).isoformat(),
                },
            )
            return PromotionResult(
                promoted=True,
                member_id=entry.member_id,
                booking_id=booking.id,
                removed_entry_ids=removed_entry_ids,
                remaining=remaining - 1,
            )

        return PromotionResult(
            promoted=False,
            removed_entry_ids=removed_entry_ids,
            remaining=remaining,
            reason="waitlist_empty",
        )
