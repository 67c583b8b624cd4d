import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.crud import membership as membership_crud
from app.models import (
    ACTIVE_LIKE_STATES,
    AccessState,
    Location,
    MemberSubscription,
    PlanScope,
)
from app.schemas.access import AccessResolution, AccessStatus

logger = logging.getLogger(__name__)

# Чем меньше, тем лучше состояние при выборе между несколькими абонементами
_STATE_RANK = {
    AccessState.ACTIVE: 0,
    AccessState.GRACE: 1,
    AccessState.RESTRICTED: 2,
    AccessState.INACTIVE: 3,
}


class AccessResolver:
    """
    Answers whether a member may book or wait for classes at a location.

    The billing system owns ``MemberSubscription.access_state``; this class
    only reads it. Among the subscriptions covering the location the best
    state wins (active > grace > restricted > inactive). Without a covering
    subscription the member has no access, and the status reports the best
    state of whatever subscriptions they hold elsewhere.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, member_id: int, location_id: int) -> AccessResolution:
        location = membership_crud.get_location(self.db, location_id)
        subscriptions = membership_crud.get_member_subscriptions(self.db, member_id)

        if location is None or not subscriptions:
            return AccessResolution(has_access=False, status=AccessStatus.INACTIVE)

        covering = [s for s in subscriptions if self._covers(s, location)]
        best = self._best(covering or subscriptions)
        status = self._status_for(best.access_state)

        has_access = bool(covering) and status == AccessStatus.ACTIVE
        if not has_access:
            logger.debug(
                f"Member {member_id} has no access to location {location_id}: "
                f"covering={len(covering)}, status={status.value}"
            )
        return AccessResolution(
            has_access=has_access,
            status=status,
            subscription_id=best.id if covering else None,
        )

    def has_access(self, member_id: int, location_id: int) -> bool:
        return self.resolve(member_id, location_id).has_access

    # --- Helpers ---

    @staticmethod
    def _covers(subscription: MemberSubscription, location: Location) -> bool:
        plan = subscription.plan
        if plan is None:
            return False
        if plan.scope == PlanScope.ALL_LOCATIONS:
            return True
        if subscription.location_id == location.id:
            return True
        if plan.scope == PlanScope.REGIONAL:
            home = subscription.location
            return bool(home and home.region and home.region == location.region)
        return False

    @staticmethod
    def _best(subscriptions) -> MemberSubscription:
        return min(subscriptions, key=lambda s: (_STATE_RANK.get(s.access_state, 99), s.id))

    @staticmethod
    def _status_for(state: Optional[AccessState]) -> AccessStatus:
        if state in ACTIVE_LIKE_STATES:
            return AccessStatus.ACTIVE
        if state == AccessState.RESTRICTED:
            return AccessStatus.RESTRICTED
        return AccessStatus.INACTIVE
