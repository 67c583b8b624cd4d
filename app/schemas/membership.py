from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.membership import AccessState


class EnrollmentRequest(BaseModel):
    member_id: int
    plan_id: int
    location_id: int


class MemberSubscriptionResponse(BaseModel):
    id: int
    member_id: int
    plan_id: int
    location_id: int
    access_state: AccessState
    created_at: Optional[datetime] = None
    access_state_changed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentResponse(BaseModel):
    subscription: MemberSubscriptionResponse
    capacity_warning: bool


class AccessStateUpdate(BaseModel):
    access_state: AccessState


class AccessStateUpdateResponse(BaseModel):
    subscription: MemberSubscriptionResponse
    removed_waitlist_entry_ids: list[int]
