from .access import AccessStatus, AccessResolution
from .booking import BookingCreate, BookingResponse, BookingCancellationResponse, AttendanceUpdate
from .waitlist import WaitlistJoin, WaitlistEntryResponse, PromotionResult, PromotionSweepResponse
from .class_instance import (
    ClassInstanceResponse,
    CapacityUpdateRequest,
    ClassCancellationRequest,
    RescheduleRequest,
    RosterResponse,
    GenerateInstancesRequest,
    GenerateInstancesResponse,
)
from .capacity import CapacityStatus, CapacityVerdict, CapacityStatusPublicResponse, CapacityLimitUpdate
from .membership import (
    EnrollmentRequest,
    MemberSubscriptionResponse,
    EnrollmentResponse,
    AccessStateUpdate,
    AccessStateUpdateResponse,
)
