import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.database import transactional
from app.models import ClassInstanceEvent, ClassInstanceEventType

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only журнал действий над занятиями."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        instance_id: int,
        actor_id: Optional[int],
        event_type: ClassInstanceEventType,
        payload: dict,
    ) -> ClassInstanceEvent:
        with transactional(self.db) as session:
            event = ClassInstanceEvent(
                class_instance_id=instance_id,
                actor_user_id=actor_id,
                event_type=event_type,
                payload=payload,
                created_at=datetime.now(timezone.utc),
            )
            session.add(event)
            session.flush()
        logger.info(f"Audit event {event_type.value} recorded for class instance {instance_id}")
        return event
