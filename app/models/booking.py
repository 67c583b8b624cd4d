from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Enum as SQLEnum, text
from sqlalchemy.orm import relationship

from app.database import Base


class BookingStatus(str, Enum):
    BOOKED = "booked"      # Активная запись, занимает место
    CANCELED = "canceled"  # Отменена участником, персоналом или вместе с занятием
    ATTENDED = "attended"  # Посетил
    NO_SHOW = "no_show"    # Не пришел


class BookingAttendanceStatus(str, Enum):
    NONE = "none"
    CHECKED_IN = "checked_in"
    NO_SHOW = "no_show"
    EXCUSED = "excused"


class CancellationReason(str, Enum):
    LATE_CANCEL = "late_cancel"
    CLASS_CANCELED = "class_canceled"
    REMOVED_BY_STAFF = "removed_by_staff"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    class_instance_id = Column(Integer, ForeignKey("class_instances.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.BOOKED)
    attendance_status = Column(
        SQLEnum(BookingAttendanceStatus), nullable=False, default=BookingAttendanceStatus.NONE
    )
    booked_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String, nullable=True)
    attendance_marked_at = Column(DateTime(timezone=True), nullable=True)
    attendance_marked_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    promoted_from_waitlist_id = Column(Integer, ForeignKey("waitlist_entries.id"), nullable=True)

    # Relationships
    member = relationship("Member", back_populates="bookings")
    class_instance = relationship("ClassInstance", back_populates="bookings")
    attendance_marked_by = relationship("User", foreign_keys=[attendance_marked_by_id])

    __table_args__ = (
        # Не больше одной активной записи участника на занятие
        Index(
            "uq_bookings_active_member_instance",
            "member_id",
            "class_instance_id",
            unique=True,
            postgresql_where=text("status = 'BOOKED'"),
            sqlite_where=text("status = 'BOOKED'"),
        ),
        Index("ix_bookings_instance_status", "class_instance_id", "status"),
    )

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, member_id={self.member_id}, "
            f"class_instance_id={self.class_instance_id}, status={self.status})>"
        )
