from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models import (
    ACTIVE_LIKE_STATES,
    AccessState,
    Location,
    LocationCapacityLimit,
    Member,
    MemberSubscription,
    MembershipPlan,
    PlanLocationCapacityLimit,
)


# =============================================================================
# УЧАСТНИКИ, ЛОКАЦИИ, ТАРИФЫ
# =============================================================================

def get_member(db: Session, member_id: int) -> Optional[Member]:
    return db.query(Member).filter(Member.id == member_id).first()


def get_member_by_user_id(db: Session, user_id: int) -> Optional[Member]:
    return db.query(Member).filter(Member.user_id == user_id).first()


def get_location(db: Session, location_id: int) -> Optional[Location]:
    return db.query(Location).filter(Location.id == location_id).first()


def get_location_for_update(db: Session, location_id: int) -> Optional[Location]:
    """
    Блокировка строки локации: продажи абонементов в одну локацию идут по одной
    """
    return (
        db.query(Location)
        .filter(Location.id == location_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def get_plan(db: Session, plan_id: int) -> Optional[MembershipPlan]:
    return db.query(MembershipPlan).filter(MembershipPlan.id == plan_id).first()


# =============================================================================
# АБОНЕМЕНТЫ УЧАСТНИКОВ (состояние доступа пишет биллинг)
# =============================================================================

def get_member_subscriptions(db: Session, member_id: int) -> List[MemberSubscription]:
    """
    Все абонементы участника вместе с тарифом и локацией продажи
    """
    return (
        db.query(MemberSubscription)
        .options(
            joinedload(MemberSubscription.plan),
            joinedload(MemberSubscription.location),
        )
        .filter(MemberSubscription.member_id == member_id)
        .order_by(MemberSubscription.id.asc())
        .all()
    )


def get_member_subscription(db: Session, subscription_id: int) -> Optional[MemberSubscription]:
    return db.query(MemberSubscription).filter(MemberSubscription.id == subscription_id).first()


def get_live_subscription(
    db: Session,
    member_id: int,
    plan_id: int,
    location_id: int,
) -> Optional[MemberSubscription]:
    """
    Действующий (active/grace) абонемент участника на тариф в локации
    """
    return (
        db.query(MemberSubscription)
        .filter(
            MemberSubscription.member_id == member_id,
            MemberSubscription.plan_id == plan_id,
            MemberSubscription.location_id == location_id,
            MemberSubscription.access_state.in_(ACTIVE_LIKE_STATES),
        )
        .first()
    )


def create_member_subscription(
    db: Session,
    member_id: int,
    plan_id: int,
    location_id: int,
) -> MemberSubscription:
    db_subscription = MemberSubscription(
        member_id=member_id,
        plan_id=plan_id,
        location_id=location_id,
        access_state=AccessState.ACTIVE,
        created_at=datetime.now(timezone.utc),
    )
    db.add(db_subscription)
    db.flush()
    return db_subscription


def count_active_members(db: Session, location_id: int, plan_id: Optional[int] = None) -> int:
    """
    Количество действующих абонементов в локации (опционально - только по тарифу)
    """
    query = db.query(func.count(MemberSubscription.id)).filter(
        MemberSubscription.location_id == location_id,
        MemberSubscription.access_state.in_(ACTIVE_LIKE_STATES),
    )
    if plan_id is not None:
        query = query.filter(MemberSubscription.plan_id == plan_id)
    return query.scalar() or 0


# =============================================================================
# ЛИМИТЫ ВМЕСТИМОСТИ
# =============================================================================

def get_location_limit(db: Session, location_id: int) -> Optional[LocationCapacityLimit]:
    return (
        db.query(LocationCapacityLimit)
        .filter(LocationCapacityLimit.location_id == location_id)
        .first()
    )


def get_plan_limit(db: Session, plan_id: int, location_id: int) -> Optional[PlanLocationCapacityLimit]:
    return (
        db.query(PlanLocationCapacityLimit)
        .filter(
            PlanLocationCapacityLimit.plan_id == plan_id,
            PlanLocationCapacityLimit.location_id == location_id,
        )
        .first()
    )


def upsert_location_limit(db: Session, location_id: int, values: dict) -> LocationCapacityLimit:
    db_limit = get_location_limit(db, location_id)
    if db_limit is None:
        db_limit = LocationCapacityLimit(location_id=location_id)
        db.add(db_limit)
    for key, value in values.items():
        setattr(db_limit, key, value)
    db.flush()
    return db_limit


def upsert_plan_limit(db: Session, plan_id: int, location_id: int, values: dict) -> PlanLocationCapacityLimit:
    db_limit = get_plan_limit(db, plan_id, location_id)
    if db_limit is None:
        db_limit = PlanLocationCapacityLimit(plan_id=plan_id, location_id=location_id)
        db.add(db_limit)
    for key, value in values.items():
        setattr(db_limit, key, value)
    db.flush()
    return db_limit


def delete_plan_limit(db: Session, plan_id: int, location_id: int) -> bool:
    db_limit = get_plan_limit(db, plan_id, location_id)
    if db_limit is None:
        return False
    db.delete(db_limit)
    db.flush()
    return True
