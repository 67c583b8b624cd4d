from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum, text
from sqlalchemy.orm import relationship

from app.database import Base


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    PROMOTED = "promoted"
    REMOVED = "removed"


class WaitlistRemovalReason(str, Enum):
    LEFT = "left"                      # Участник сам покинул очередь
    ACCESS_LOST = "access_lost"        # Доступ закрыт биллингом
    CLASS_CANCELED = "class_canceled"  # Занятие отменено
    REMOVED_BY_STAFF = "removed_by_staff"


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    class_instance_id = Column(Integer, ForeignKey("class_instances.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # Монотонно растет внутри занятия, не переиспользуется
    status = Column(SQLEnum(WaitlistStatus), nullable=False, default=WaitlistStatus.WAITING)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    promoted_at = Column(DateTime(timezone=True), nullable=True)
    removed_at = Column(DateTime(timezone=True), nullable=True)
    removal_reason = Column(String, nullable=True)

    # Relationships
    member = relationship("Member")
    class_instance = relationship("ClassInstance", back_populates="waitlist_entries")

    __table_args__ = (
        UniqueConstraint("class_instance_id", "position", name="uq_waitlist_instance_position"),
        Index(
            "uq_waitlist_waiting_member_instance",
            "member_id",
            "class_instance_id",
            unique=True,
            postgresql_where=text("status = 'WAITING'"),
            sqlite_where=text("status = 'WAITING'"),
        ),
    )

    def __repr__(self):
        return (
            f"<WaitlistEntry(id={self.id}, member_id={self.member_id}, "
            f"class_instance_id={self.class_instance_id}, position={self.position}, status={self.status})>"
        )
