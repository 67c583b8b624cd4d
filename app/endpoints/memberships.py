from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.permissions import STAFF_ROLES, get_current_user
from app.core.security import verify_api_key
from app.dependencies import get_db
from app.errors.booking_errors import BookingError
from app.errors.capacity_errors import CapacityError
from app.errors.http import http_error
from app.schemas.membership import (
    AccessStateUpdate,
    AccessStateUpdateResponse,
    EnrollmentRequest,
    EnrollmentResponse,
)
from app.services.membership import MembershipService

router = APIRouter(prefix="/memberships", tags=["Memberships"])


@router.post("/", response_model=EnrollmentResponse, status_code=201)
def enroll_endpoint(
    request: EnrollmentRequest,
    current_user=Depends(get_current_user(STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Продает абонемент участнику. При жестком лимите локации или тарифа
    продажа блокируется, при приближении к лимиту возвращается предупреждение.
    """
    try:
        subscription, capacity_warning = MembershipService(db).enroll(
            request.member_id, request.plan_id, request.location_id
        )
    except (BookingError, CapacityError) as e:
        raise http_error(e)
    return {"subscription": subscription, "capacity_warning": capacity_warning}


@router.put(
    "/{subscription_id}/access-state",
    response_model=AccessStateUpdateResponse,
    dependencies=[Depends(verify_api_key)],
)
def update_access_state_endpoint(
    subscription_id: int,
    request: AccessStateUpdate,
    db: Session = Depends(get_db),
):
    """
    Вызывается биллингом при смене состояния доступа (X-API-Key).
    При потере доступа участник убирается из листов ожидания.
    """
    try:
        subscription, removed_ids = MembershipService(db).apply_access_state(
            subscription_id, request.access_state
        )
    except CapacityError as e:
        raise http_error(e)
    return {"subscription": subscription, "removed_waitlist_entry_ids": removed_ids}
