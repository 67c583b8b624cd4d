import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from app.crud import membership as membership_crud
from app.database import transactional
from app.errors.capacity_errors import LocationNotFound, PlanNotFound
from app.models import LocationCapacityLimit, PlanLocationCapacityLimit
from app.schemas.capacity import CapacityLimitUpdate, CapacityStatus, CapacityVerdict

logger = logging.getLogger(__name__)


def derive_status(
    active_count: int,
    max_allowed: Optional[int],
    soft_limit_threshold: Optional[int],
    hard_limit_enforced: bool,
) -> CapacityStatus:
    """
    Maps a member count against a limit onto a capacity status.

    The checks run in a fixed order, so a count at the maximum with a hard
    limit is BLOCK_NEW even though it is also past the soft threshold.
    """
    if max_allowed is None:
        return CapacityStatus.NO_LIMIT
    if hard_limit_enforced and active_count >= max_allowed:
        return CapacityStatus.BLOCK_NEW
    if active_count >= max_allowed:
        return CapacityStatus.AT_CAPACITY
    if soft_limit_threshold is not None and active_count >= soft_limit_threshold:
        return CapacityStatus.NEAR_LIMIT
    return CapacityStatus.OK


class CapacityPolicyEvaluator:
    """Membership-sales capacity of a location, overall or for one plan."""

    def __init__(self, db: Session):
        self.db = db

    # --- Evaluation ---

    def evaluate_location(self, location_id: int) -> CapacityVerdict:
        limit = membership_crud.get_location_limit(self.db, location_id)
        active_count = membership_crud.count_active_members(self.db, location_id)
        return self._verdict(active_count, limit)

    def evaluate_plan_at_location(self, plan_id: int, location_id: int) -> CapacityVerdict:
        limit = membership_crud.get_plan_limit(self.db, plan_id, location_id)
        active_count = membership_crud.count_active_members(self.db, location_id, plan_id=plan_id)
        return self._verdict(active_count, limit)

    @staticmethod
    def allows_new_enrollment(verdict: CapacityVerdict) -> bool:
        return verdict.status != CapacityStatus.BLOCK_NEW

    @staticmethod
    def should_warn(verdict: CapacityVerdict) -> bool:
        return verdict.status in (CapacityStatus.NEAR_LIMIT, CapacityStatus.AT_CAPACITY)

    # --- Limit management (Transactional) ---

    def set_location_limit(self, location_id: int, limit_data: CapacityLimitUpdate) -> CapacityVerdict:
        with transactional(self.db) as session:
            if not membership_crud.get_location(session, location_id):
                raise LocationNotFound(f"Локация {location_id} не найдена")
            membership_crud.upsert_location_limit(session, location_id, limit_data.model_dump())
        logger.info(f"Capacity limit for location {location_id} set to {limit_data.model_dump()}")
        return self.evaluate_location(location_id)

    def set_plan_limit(self, plan_id: int, location_id: int, limit_data: CapacityLimitUpdate) -> CapacityVerdict:
        with transactional(self.db) as session:
            self._ensure_plan_and_location(session, plan_id, location_id)
            membership_crud.upsert_plan_limit(session, plan_id, location_id, limit_data.model_dump())
        logger.info(f"Capacity limit for plan {plan_id} at location {location_id} set to {limit_data.model_dump()}")
        return self.evaluate_plan_at_location(plan_id, location_id)

    def clear_plan_limit(self, plan_id: int, location_id: int) -> bool:
        with transactional(self.db) as session:
            self._ensure_plan_and_location(session, plan_id, location_id)
            deleted = membership_crud.delete_plan_limit(session, plan_id, location_id)
        if deleted:
            logger.info(f"Capacity limit for plan {plan_id} at location {location_id} removed")
        return deleted

    # --- Helpers ---

    @staticmethod
    def _ensure_plan_and_location(session: Session, plan_id: int, location_id: int) -> None:
        if not membership_crud.get_plan(session, plan_id):
            raise PlanNotFound(f"Тариф {plan_id} не найден")
        if not membership_crud.get_location(session, location_id):
            raise LocationNotFound(f"Локация {location_id} не найдена")

    @staticmethod
    def _verdict(
        active_count: int,
        limit: Optional[Union[LocationCapacityLimit, PlanLocationCapacityLimit]],
    ) -> CapacityVerdict:
        if limit is None:
            return CapacityVerdict(status=CapacityStatus.NO_LIMIT, active_count=active_count)
        return CapacityVerdict(
            status=derive_status(
                active_count,
                limit.max_active_members,
                limit.soft_limit_threshold,
                bool(limit.hard_limit_enforced),
            ),
            active_count=active_count,
            max_allowed=limit.max_active_members,
            soft_limit_threshold=limit.soft_limit_threshold,
            hard_limit_enforced=bool(limit.hard_limit_enforced),
        )
