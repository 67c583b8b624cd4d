from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.auth.permissions import get_current_user
from app.crud import membership as membership_crud
from app.dependencies import get_db
from app.models import Member
from app.models.user import UserRole


def get_current_member(
    current_user=Depends(get_current_user([UserRole.MEMBER.value])),
    db: Session = Depends(get_db),
) -> Member:
    """Профиль участника текущего пользователя."""
    member = membership_crud.get_member_by_user_id(db, current_user["id"])
    if not member:
        raise HTTPException(
            status_code=404,
            detail={"error": "MEMBER_NOT_FOUND", "message": "Профиль участника не найден"},
        )
    return member
