from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.waitlist import WaitlistStatus


class WaitlistJoin(BaseModel):
    class_instance_id: int


class WaitlistEntryResponse(BaseModel):
    id: int
    member_id: int
    class_instance_id: int
    position: int
    status: WaitlistStatus
    joined_at: datetime
    promoted_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None
    removal_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PromotionResult(BaseModel):
    promoted: bool
    member_id: Optional[int] = None
    booking_id: Optional[int] = None
    existing: bool = False
    removed_entry_ids: list[int] = []
    remaining: int = 0
    reason: Optional[str] = None


class PromotionSweepResponse(BaseModel):
    message: str
    scanned: int
    promoted: int
    timestamp: datetime
