from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship

from app.database import Base


class PlanScope(str, Enum):
    SINGLE_LOCATION = "single_location"  # Только локация, где продан абонемент
    REGIONAL = "regional"                # Все локации региона
    ALL_LOCATIONS = "all_locations"      # Вся сеть


class AccessState(str, Enum):
    """Состояние доступа, которое выставляет биллинг."""
    ACTIVE = "active"
    GRACE = "grace"
    RESTRICTED = "restricted"
    INACTIVE = "inactive"


# Состояния, при которых у участника есть доступ к залу
ACTIVE_LIKE_STATES = (AccessState.ACTIVE, AccessState.GRACE)


class MembershipPlan(Base):
    __tablename__ = "membership_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    scope = Column(SQLEnum(PlanScope), nullable=False, default=PlanScope.SINGLE_LOCATION)
    is_active = Column(Boolean, default=True)

    subscriptions = relationship("MemberSubscription", back_populates="plan")

    def __repr__(self):
        return f"<MembershipPlan(id={self.id}, name={self.name}, scope={self.scope})>"


class MemberSubscription(Base):
    __tablename__ = "member_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("membership_plans.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)  # Локация продажи
    access_state = Column(SQLEnum(AccessState), nullable=False, default=AccessState.ACTIVE)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    access_state_changed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    member = relationship("Member", back_populates="subscriptions")
    plan = relationship("MembershipPlan", back_populates="subscriptions")
    location = relationship("Location")

    def __repr__(self):
        return (
            f"<MemberSubscription(id={self.id}, member_id={self.member_id}, plan_id={self.plan_id}, "
            f"location_id={self.location_id}, access_state={self.access_state})>"
        )
