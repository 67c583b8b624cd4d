from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.permissions import STAFF_ROLES, get_current_user, is_staff
from app.crud import membership as membership_crud
from app.dependencies import get_db
from app.endpoints.dependencies import get_current_member
from app.errors.booking_errors import BookingError
from app.errors.http import http_error
from app.errors.waitlist_errors import WaitlistEntryNotFound
from app.models import Member
from app.models.user import UserRole
from app.schemas.waitlist import WaitlistEntryResponse, WaitlistJoin
from app.services.waitlist import WaitlistService

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


@router.post("/", response_model=WaitlistEntryResponse, status_code=201)
def join_waitlist_endpoint(
    waitlist_data: WaitlistJoin,
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    """Ставит текущего участника в лист ожидания заполненного занятия."""
    try:
        return WaitlistService(db).join_waitlist(member.id, waitlist_data.class_instance_id)
    except BookingError as e:
        raise http_error(e)


@router.delete("/{entry_id}", response_model=WaitlistEntryResponse)
def leave_waitlist_endpoint(
    entry_id: int,
    current_user=Depends(get_current_user([UserRole.MEMBER.value] + STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """Убирает запись из листа ожидания. Участник - только свою."""
    member_id = None
    if not is_staff(current_user):
        member = membership_crud.get_member_by_user_id(db, current_user["id"])
        if not member:
            raise http_error(WaitlistEntryNotFound(f"Запись в листе ожидания {entry_id} не найдена"))
        member_id = member.id

    try:
        return WaitlistService(db).leave_waitlist(
            entry_id, member_id=member_id, removed_by_staff=member_id is None
        )
    except BookingError as e:
        raise http_error(e)
