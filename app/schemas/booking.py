from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.booking import BookingStatus, BookingAttendanceStatus


class BookingCreate(BaseModel):
    class_instance_id: int


class BookingResponse(BaseModel):
    id: int
    member_id: int
    class_instance_id: int
    location_id: int
    status: BookingStatus
    attendance_status: BookingAttendanceStatus
    booked_at: datetime
    canceled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    attendance_marked_at: Optional[datetime] = None
    promoted_from_waitlist_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class BookingCancellationResponse(BaseModel):
    """Схема ответа при отмене записи"""
    booking_id: int
    status: BookingStatus
    late: bool


class AttendanceUpdate(BaseModel):
    attendance_status: BookingAttendanceStatus = Field(..., description="Статус посещения")

    @field_validator("attendance_status")
    @classmethod
    def prevent_none_status(cls, v):
        if v == BookingAttendanceStatus.NONE:
            raise ValueError("Attendance status 'none' cannot be set manually.")
        return v
