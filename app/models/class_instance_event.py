from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship

from app.database import Base


class ClassInstanceEventType(str, Enum):
    CAPACITY_CHANGED = "CAPACITY_CHANGED"
    CLASS_CANCELLED = "CLASS_CANCELLED"
    CLASS_RESCHEDULED = "CLASS_RESCHEDULED"
    ROSTER_EDITED = "ROSTER_EDITED"
    MEMBER_REMOVED = "MEMBER_REMOVED"


class ClassInstanceEvent(Base):
    """Журнал административных действий над занятием (только добавление)."""
    __tablename__ = "class_instance_events"

    id = Column(Integer, primary_key=True, index=True)
    class_instance_id = Column(Integer, ForeignKey("class_instances.id"), nullable=False, index=True)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    event_type = Column(SQLEnum(ClassInstanceEventType), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    class_instance = relationship("ClassInstance", back_populates="events")
