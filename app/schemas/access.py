from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AccessStatus(str, Enum):
    ACTIVE = "ACTIVE"          # active или grace
    RESTRICTED = "RESTRICTED"
    INACTIVE = "INACTIVE"


class AccessResolution(BaseModel):
    has_access: bool
    status: AccessStatus
    subscription_id: Optional[int] = None
