import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.permissions import STAFF_ROLES, get_current_user
from app.crud import class_instance as crud
from app.dependencies import get_db
from app.errors.booking_errors import BookingError, ClassInstanceNotFound
from app.errors.capacity_errors import CapacityError
from app.errors.http import http_error
from app.models.user import UserRole
from app.schemas.booking import BookingResponse
from app.schemas.class_instance import (
    CapacityUpdateRequest,
    ClassCancellationRequest,
    ClassInstanceResponse,
    GenerateInstancesRequest,
    GenerateInstancesResponse,
    RescheduleRequest,
    RosterResponse,
)
from app.schemas.waitlist import PromotionResult
from app.services.booking import BookingService
from app.services.class_instance import ClassInstanceService
from app.services.promotion import PromotionEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/class-instances", tags=["Class Instances"])

MANAGER_ROLES = STAFF_ROLES + [UserRole.INSTRUCTOR.value]


def _ensure_can_manage(db: Session, class_instance_id: int, current_user: dict) -> None:
    """Инструктор управляет только своими занятиями (чужие отдаем как 404)."""
    if current_user["role"] != UserRole.INSTRUCTOR.value:
        return
    instance = crud.get_class_instance(db, class_instance_id)
    if not instance or instance.instructor_id != current_user["id"]:
        raise http_error(ClassInstanceNotFound(f"Занятие {class_instance_id} не найдено"))


# Генерация занятий по расписанию
@router.post("/generate", response_model=GenerateInstancesResponse, status_code=201)
def generate_instances_endpoint(
    request: GenerateInstancesRequest,
    current_user=Depends(get_current_user(STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Создает занятия по недельному расписанию локации на период (не больше 90 дней).
    Уже созданные занятия пропускаются.
    """
    try:
        created, skipped = ClassInstanceService(db).generate_instances(
            request.location_id, request.date_from, request.date_to
        )
    except (BookingError, CapacityError) as e:
        raise http_error(e)
    return {"created": len(created), "skipped": skipped, "instances": created}


# Изменение вместимости
@router.put("/{class_instance_id}/capacity", response_model=ClassInstanceResponse)
def update_capacity_endpoint(
    class_instance_id: int,
    request: CapacityUpdateRequest,
    current_user=Depends(get_current_user(MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Меняет вместимость занятия. Нельзя опустить ниже числа записанных.
    При увеличении свободные места сразу заполняются из листа ожидания.
    """
    _ensure_can_manage(db, class_instance_id, current_user)
    try:
        return ClassInstanceService(db).update_capacity(class_instance_id, request.capacity, current_user["id"])
    except BookingError as e:
        raise http_error(e)


# Отмена занятия
@router.post("/{class_instance_id}/cancel", response_model=ClassInstanceResponse)
def cancel_class_instance_endpoint(
    class_instance_id: int,
    request: ClassCancellationRequest,
    current_user=Depends(get_current_user(MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Отменяет занятие: все записи отменяются, лист ожидания закрывается,
    записанные участники получают уведомления.
    """
    _ensure_can_manage(db, class_instance_id, current_user)
    try:
        return ClassInstanceService(db).cancel_class_instance(
            class_instance_id, current_user["id"], reason=request.reason
        )
    except BookingError as e:
        raise http_error(e)


# Перенос занятия
@router.put("/{class_instance_id}/reschedule", response_model=ClassInstanceResponse)
def reschedule_class_instance_endpoint(
    class_instance_id: int,
    request: RescheduleRequest,
    current_user=Depends(get_current_user(MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """Переносит занятие на новое время, записи сохраняются."""
    _ensure_can_manage(db, class_instance_id, current_user)
    try:
        return ClassInstanceService(db).reschedule_class_instance(
            class_instance_id, request.start_at, request.end_at, current_user["id"]
        )
    except BookingError as e:
        raise http_error(e)


# Удаление участника из состава
@router.delete("/{class_instance_id}/bookings/{booking_id}", response_model=BookingResponse)
def remove_member_endpoint(
    class_instance_id: int,
    booking_id: int,
    current_user=Depends(get_current_user(MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """Убирает участника с занятия, место уходит следующему в очереди."""
    _ensure_can_manage(db, class_instance_id, current_user)
    try:
        return BookingService(db).remove_member(
            booking_id, current_user["id"], class_instance_id=class_instance_id
        )
    except BookingError as e:
        raise http_error(e)


# Состав занятия
@router.get("/{class_instance_id}/roster", response_model=RosterResponse)
def get_roster_endpoint(
    class_instance_id: int,
    current_user=Depends(get_current_user(MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    """Записи (кроме отмененных) и лист ожидания в порядке очереди."""
    _ensure_can_manage(db, class_instance_id, current_user)
    try:
        return ClassInstanceService(db).get_roster(class_instance_id)
    except BookingError as e:
        raise http_error(e)


# Ручной запуск продвижения очереди
@router.post("/{class_instance_id}/promote", response_model=PromotionResult)
def promote_from_waitlist_endpoint(
    class_instance_id: int,
    current_user=Depends(get_current_user(STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Отдает одно свободное место первому в очереди участнику с доступом.
    Если свободных мест нет, ничего не меняет.
    """
    try:
        return PromotionEngine(db).promote_from_waitlist(class_instance_id)
    except BookingError as e:
        raise http_error(e)
