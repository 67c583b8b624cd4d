import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.crud import membership as membership_crud
from app.database import transactional
from app.models import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Кладет уведомления в очередь `notifications`. Доставка (push/email)
    выполняется отдельным сервисом, здесь только постановка в очередь.
    """

    def __init__(self, db: Session):
        self.db = db

    def enqueue(self, user_id: int, notification_type: NotificationType, payload: dict) -> Notification:
        with transactional(self.db) as session:
            notification = Notification(
                user_id=user_id,
                type=notification_type,
                status="queued",
                payload=payload,
                created_at=datetime.now(timezone.utc),
            )
            session.add(notification)
            session.flush()
        logger.info(f"Notification {notification_type.value} queued for user {user_id}")
        return notification

    def enqueue_for_member(
        self,
        member_id: int,
        notification_type: NotificationType,
        payload: dict,
    ) -> Optional[Notification]:
        member = membership_crud.get_member(self.db, member_id)
        if not member or not member.user_id:
            logger.warning(f"Member {member_id} has no user account, {notification_type.value} not queued")
            return None
        return self.enqueue(member.user_id, notification_type, payload)
