from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.class_instance import ClassInstanceStatus
from app.schemas.booking import BookingResponse
from app.schemas.waitlist import WaitlistEntryResponse


class ClassInstanceResponse(BaseModel):
    id: int
    schedule_id: Optional[int] = None
    location_id: int
    instructor_id: Optional[int] = None
    class_name: str
    class_date: date
    start_at: datetime
    end_at: datetime
    capacity: int
    status: ClassInstanceStatus
    late_cancel_cutoff_minutes: Optional[int] = None
    canceled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CapacityUpdateRequest(BaseModel):
    capacity: int = Field(..., description="Новая вместимость занятия")


class ClassCancellationRequest(BaseModel):
    """Схема для отмены занятия"""
    reason: Optional[str] = None


class RescheduleRequest(BaseModel):
    start_at: datetime
    end_at: datetime


class RosterResponse(BaseModel):
    class_instance: ClassInstanceResponse
    booked_count: int
    bookings: List[BookingResponse]
    waitlist: List[WaitlistEntryResponse]


class GenerateInstancesRequest(BaseModel):
    location_id: int
    date_from: date
    date_to: date

    @model_validator(mode="after")
    def check_range(self):
        if self.date_to < self.date_from:
            raise ValueError("date_to must not be earlier than date_from")
        return self


class GenerateInstancesResponse(BaseModel):
    created: int
    skipped: int
    instances: List[ClassInstanceResponse]
