import logging
from typing import List, Tuple

from sqlalchemy.orm import Session

from app.crud import class_instance as class_instance_crud
from app.crud import membership as membership_crud
from app.crud import waitlist as waitlist_crud
from app.database import transactional
from app.errors.booking_errors import MemberNotFound
from app.errors.capacity_errors import (
    AlreadySubscribed,
    CapacityBlocked,
    LocationNotFound,
    PlanCapacityBlocked,
    PlanNotFound,
    SubscriptionNotFound,
)
from app.models import ACTIVE_LIKE_STATES, AccessState, MemberSubscription, WaitlistRemovalReason, WaitlistStatus
from app.services.access import AccessResolver
from app.services.capacity import CapacityPolicyEvaluator
from app.services.waitlist import WaitlistService
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, db: Session):
        self.db = db
        self.capacity_evaluator = CapacityPolicyEvaluator(db)
        self.access_resolver = AccessResolver(db)
        self.waitlist_service = WaitlistService(db)

    # --- Public Methods (Transactional) ---

    def enroll(self, member_id: int, plan_id: int, location_id: int) -> Tuple[MemberSubscription, bool]:
        """
        Продажа абонемента с проверкой лимитов локации и тарифа.
        Возвращает абонемент и флаг предупреждения о приближении к лимиту.
        """
        with transactional(self.db) as session:
            subscription, capacity_warning = self._enroll_logic(session, member_id, plan_id, location_id)
        return subscription, capacity_warning

    def apply_access_state(self, subscription_id: int, access_state: AccessState) -> Tuple[MemberSubscription, List[int]]:
        """
        Применение состояния доступа от биллинга. Если участник потерял доступ,
        его записи в листах ожидания на будущие занятия закрываются.
        Уже подтвержденные записи на занятия не трогаем.
        """
        with transactional(self.db) as session:
            subscription, removed_ids = self._apply_access_state_logic(session, subscription_id, access_state)
        return subscription, removed_ids

    # --- Private Logic Methods (Non-transactional) ---

    def _enroll_logic(
        self,
        session: Session,
        member_id: int,
        plan_id: int,
        location_id: int,
    ) -> Tuple[MemberSubscription, bool]:
        if not membership_crud.get_member(session, member_id):
            raise MemberNotFound(f"Участник {member_id} не найден")
        plan = membership_crud.get_plan(session, plan_id)
        if not plan or not plan.is_active:
            raise PlanNotFound(f"Тариф {plan_id} не найден")
        # Блокировка локации: счетчики активных участников читаем по одному
        if not membership_crud.get_location_for_update(session, location_id):
            raise LocationNotFound(f"Локация {location_id} не найдена")

        if membership_crud.get_live_subscription(session, member_id, plan_id, location_id):
            raise AlreadySubscribed("У участника уже есть действующий абонемент на этот тариф")

        location_verdict = self.capacity_evaluator.evaluate_location(location_id)
        if not self.capacity_evaluator.allows_new_enrollment(location_verdict):
            logger.info(
                f"Enrollment blocked at location {location_id}: "
                f"{location_verdict.active_count}/{location_verdict.max_allowed}"
            )
            raise CapacityBlocked("Достигнут лимит участников локации")

        plan_verdict = self.capacity_evaluator.evaluate_plan_at_location(plan_id, location_id)
        if not self.capacity_evaluator.allows_new_enrollment(plan_verdict):
            logger.info(
                f"Enrollment blocked for plan {plan_id} at location {location_id}: "
                f"{plan_verdict.active_count}/{plan_verdict.max_allowed}"
            )
            raise PlanCapacityBlocked("Достигнут лимит участников тарифа в локации")

        subscription = membership_crud.create_member_subscription(session, member_id, plan_id, location_id)
        capacity_warning = self.capacity_evaluator.should_warn(location_verdict) or self.capacity_evaluator.should_warn(
            plan_verdict
        )
        logger.info(
            f"Member {member_id} enrolled to plan {plan_id} at location {location_id}, "
            f"subscription {subscription.id}, warning={capacity_warning}"
        )
        return subscription, capacity_warning

    def _apply_access_state_logic(
        self,
        session: Session,
        subscription_id: int,
        access_state: AccessState,
    ) -> Tuple[MemberSubscription, List[int]]:
        subscription = membership_crud.get_member_subscription(session, subscription_id)
        if not subscription:
            raise SubscriptionNotFound(f"Абонемент {subscription_id} не найден")

        previous_state = subscription.access_state
        subscription.access_state = access_state
        subscription.access_state_changed_at = utcnow()
        session.add(subscription)
        session.flush()
        logger.info(
            f"Subscription {subscription.id} access state {previous_state.value} -> {access_state.value}"
        )

        removed_ids = []
        if access_state in ACTIVE_LIKE_STATES:
            return subscription, removed_ids

        now = utcnow()
        for entry in waitlist_crud.get_member_upcoming_waiting_entries(session, subscription.member_id, now):
            # Блокировка занятия сериализует удаление с продвижением очереди
            class_instance_crud.get_class_instance_for_update(session, entry.class_instance_id)
            session.refresh(entry)
            if entry.status != WaitlistStatus.WAITING:
                continue
            # Другой абонемент может по-прежнему покрывать локацию занятия
            if self.access_resolver.has_access(entry.member_id, entry.class_instance.location_id):
                continue
            self.waitlist_service.remove_entry(session, entry, WaitlistRemovalReason.ACCESS_LOST)
            removed_ids.append(entry.id)

        if removed_ids:
            logger.info(
                f"Member {subscription.member_id} lost access, waitlist entries removed: {removed_ids}"
            )
        return subscription, removed_ids
