from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    Time,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from app.database import Base


class ClassInstanceStatus(str, Enum):
    SCHEDULED = "scheduled"  # Запланировано, открыта запись
    CANCELED = "canceled"    # Отменено администратором, терминальный статус
    COMPLETED = "completed"  # Проведено


class ClassSchedule(Base):
    """Еженедельное расписание, из которого генерируются занятия."""
    __tablename__ = "class_schedules"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    class_name = Column(String, nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = понедельник ... 6 = воскресенье
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    late_cancel_cutoff_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)

    instances = relationship("ClassInstance", back_populates="schedule")

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_class_schedules_capacity_positive"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_class_schedules_weekday"),
    )


class ClassInstance(Base):
    __tablename__ = "class_instances"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("class_schedules.id"), nullable=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    class_name = Column(String, nullable=False)
    class_date = Column(Date, nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(SQLEnum(ClassInstanceStatus), nullable=False, default=ClassInstanceStatus.SCHEDULED)
    late_cancel_cutoff_minutes = Column(Integer, nullable=True)  # Если пусто - берется из конфига
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String, nullable=True)

    # Relationships
    schedule = relationship("ClassSchedule", back_populates="instances")
    location = relationship("Location", back_populates="class_instances")
    bookings = relationship("Booking", back_populates="class_instance")
    waitlist_entries = relationship("WaitlistEntry", back_populates="class_instance")
    events = relationship("ClassInstanceEvent", back_populates="class_instance")

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_class_instances_capacity_positive"),
        UniqueConstraint("schedule_id", "class_date", name="uq_class_instances_schedule_date"),
    )

    def __repr__(self):
        return (
            f"<ClassInstance(id={self.id}, class_name={self.class_name}, start_at={self.start_at}, "
            f"capacity={self.capacity}, status={self.status})>"
        )
