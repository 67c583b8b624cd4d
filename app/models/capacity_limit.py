from datetime import datetime

from sqlalchemy import Column, Integer, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class LocationCapacityLimit(Base):
    """Лимит активных участников на локацию."""
    __tablename__ = "location_capacity_limits"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, unique=True)
    max_active_members = Column(Integer, nullable=True)
    soft_limit_threshold = Column(Integer, nullable=True)
    hard_limit_enforced = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    location = relationship("Location", back_populates="capacity_limit")


class PlanLocationCapacityLimit(Base):
    """Лимит активных участников конкретного тарифа на локации."""
    __tablename__ = "plan_location_capacity_limits"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("membership_plans.id", ondelete="CASCADE"), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False)
    max_active_members = Column(Integer, nullable=True)
    soft_limit_threshold = Column(Integer, nullable=True)
    hard_limit_enforced = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    plan = relationship("MembershipPlan")
    location = relationship("Location")

    __table_args__ = (
        UniqueConstraint("plan_id", "location_id", name="uq_plan_location_capacity_limit"),
    )
