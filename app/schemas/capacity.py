from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class CapacityStatus(str, Enum):
    NO_LIMIT = "NO_LIMIT"
    OK = "OK"
    NEAR_LIMIT = "NEAR_LIMIT"
    AT_CAPACITY = "AT_CAPACITY"
    BLOCK_NEW = "BLOCK_NEW"


class CapacityVerdict(BaseModel):
    status: CapacityStatus
    active_count: int
    max_allowed: Optional[int] = None
    soft_limit_threshold: Optional[int] = None
    hard_limit_enforced: bool = False


class CapacityStatusPublicResponse(BaseModel):
    """Участники видят только статус, без цифр."""
    status: CapacityStatus


class CapacityLimitUpdate(BaseModel):
    max_active_members: Optional[int] = Field(None, ge=1)
    soft_limit_threshold: Optional[int] = Field(None, ge=1)
    hard_limit_enforced: bool = False

    @model_validator(mode="after")
    def check_threshold(self):
        if self.soft_limit_threshold is not None and self.max_active_members is None:
            raise ValueError("soft_limit_threshold requires max_active_members")
        if (
            self.max_active_members is not None
            and self.soft_limit_threshold is not None
            and self.soft_limit_threshold > self.max_active_members
        ):
            raise ValueError("soft_limit_threshold must not exceed max_active_members")
        return self
