from typing import Union

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.permissions import STAFF_ROLES, get_current_user, is_staff
from app.crud import membership as membership_crud
from app.dependencies import get_db
from app.errors.capacity_errors import CapacityError, LocationNotFound, PlanNotFound
from app.errors.http import http_error
from app.models.user import UserRole
from app.schemas.capacity import CapacityLimitUpdate, CapacityStatusPublicResponse, CapacityVerdict
from app.services.capacity import CapacityPolicyEvaluator

router = APIRouter(prefix="/capacity", tags=["Capacity"])

LIMIT_MANAGER_ROLES = [UserRole.ADMIN.value, UserRole.OWNER.value]
VIEWER_ROLES = STAFF_ROLES + [UserRole.MEMBER.value]


def _visible(verdict: CapacityVerdict, current_user: dict) -> Union[CapacityVerdict, CapacityStatusPublicResponse]:
    # Участникам только статус, без количества
    if is_staff(current_user):
        return verdict
    return CapacityStatusPublicResponse(status=verdict.status)


@router.get("/locations/{location_id}", response_model=Union[CapacityVerdict, CapacityStatusPublicResponse])
def get_location_capacity_endpoint(
    location_id: int,
    current_user=Depends(get_current_user(VIEWER_ROLES)),
    db: Session = Depends(get_db),
):
    """Статус заполненности локации по активным абонементам."""
    if not membership_crud.get_location(db, location_id):
        raise http_error(LocationNotFound(f"Локация {location_id} не найдена"))
    verdict = CapacityPolicyEvaluator(db).evaluate_location(location_id)
    return _visible(verdict, current_user)


@router.get(
    "/plans/{plan_id}/locations/{location_id}",
    response_model=Union[CapacityVerdict, CapacityStatusPublicResponse],
)
def get_plan_capacity_endpoint(
    plan_id: int,
    location_id: int,
    current_user=Depends(get_current_user(VIEWER_ROLES)),
    db: Session = Depends(get_db),
):
    """Статус заполненности тарифа в локации."""
    if not membership_crud.get_plan(db, plan_id):
        raise http_error(PlanNotFound(f"Тариф {plan_id} не найден"))
    if not membership_crud.get_location(db, location_id):
        raise http_error(LocationNotFound(f"Локация {location_id} не найдена"))
    verdict = CapacityPolicyEvaluator(db).evaluate_plan_at_location(plan_id, location_id)
    return _visible(verdict, current_user)


@router.put("/locations/{location_id}", response_model=CapacityVerdict)
def set_location_limit_endpoint(
    location_id: int,
    limit_data: CapacityLimitUpdate,
    current_user=Depends(get_current_user(LIMIT_MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """Устанавливает лимит активных участников локации."""
    try:
        return CapacityPolicyEvaluator(db).set_location_limit(location_id, limit_data)
    except CapacityError as e:
        raise http_error(e)


@router.put("/plans/{plan_id}/locations/{location_id}", response_model=CapacityVerdict)
def set_plan_limit_endpoint(
    plan_id: int,
    location_id: int,
    limit_data: CapacityLimitUpdate,
    current_user=Depends(get_current_user(LIMIT_MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """Устанавливает лимит активных участников тарифа в локации."""
    try:
        return CapacityPolicyEvaluator(db).set_plan_limit(plan_id, location_id, limit_data)
    except CapacityError as e:
        raise http_error(e)


@router.delete("/plans/{plan_id}/locations/{location_id}", status_code=204)
def clear_plan_limit_endpoint(
    plan_id: int,
    location_id: int,
    current_user=Depends(get_current_user(LIMIT_MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """Снимает лимит тарифа в локации."""
    try:
        CapacityPolicyEvaluator(db).clear_plan_limit(plan_id, location_id)
    except CapacityError as e:
        raise http_error(e)
