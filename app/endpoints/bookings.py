import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.permissions import STAFF_ROLES, get_current_user, is_staff
from app.crud import booking as booking_crud
from app.crud import class_instance as class_instance_crud
from app.crud import membership as membership_crud
from app.dependencies import get_db
from app.endpoints.dependencies import get_current_member
from app.errors.booking_errors import BookingError, BookingNotFound
from app.errors.http import http_error
from app.models import Member
from app.models.user import UserRole
from app.schemas.booking import (
    AttendanceUpdate,
    BookingCancellationResponse,
    BookingCreate,
    BookingResponse,
)
from app.services.booking import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# Запись на занятие
@router.post("/", response_model=BookingResponse, status_code=201)
def book_class_endpoint(
    booking_data: BookingCreate,
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    """
    Записывает текущего участника на занятие.
    Если мест нет, возвращается CLASS_FULL, и участник может встать в лист ожидания.
    """
    try:
        return BookingService(db).book_class(member.id, booking_data.class_instance_id)
    except BookingError as e:
        raise http_error(e)


# Отмена записи
@router.post("/{booking_id}/cancel", response_model=BookingCancellationResponse)
def cancel_booking_endpoint(
    booking_id: int,
    current_user=Depends(get_current_user([UserRole.MEMBER.value] + STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Отменяет запись. Участник может отменить только свою запись,
    персонал - любую. Отмена позже порога помечается как поздняя.
    """
    member_id = None
    if not is_staff(current_user):
        member = membership_crud.get_member_by_user_id(db, current_user["id"])
        if not member:
            raise http_error(BookingNotFound(f"Запись {booking_id} не найдена"))
        member_id = member.id

    try:
        return BookingService(db).cancel_booking(booking_id, member_id=member_id)
    except BookingError as e:
        raise http_error(e)


# Отметка посещения
@router.put("/{booking_id}/attendance", response_model=BookingResponse)
def mark_attendance_endpoint(
    booking_id: int,
    attendance: AttendanceUpdate,
    current_user=Depends(get_current_user(STAFF_ROLES + [UserRole.INSTRUCTOR.value])),
    db: Session = Depends(get_db),
):
    """
    Отмечает посещение: checked_in, no_show или excused.
    Инструктор может отмечать только на своих занятиях.
    """
    if current_user["role"] == UserRole.INSTRUCTOR.value:
        booking = booking_crud.get_booking(db, booking_id)
        instance = class_instance_crud.get_class_instance(db, booking.class_instance_id) if booking else None
        if not instance or instance.instructor_id != current_user["id"]:
            # 404, чтобы не раскрывать чужие записи
            raise http_error(BookingNotFound(f"Запись {booking_id} не найдена"))

    try:
        return BookingService(db).mark_attendance(
            booking_id, attendance.attendance_status, marked_by_id=current_user["id"]
        )
    except BookingError as e:
        raise http_error(e)
