import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.security import verify_api_key
from app.dependencies import get_db
from app.schemas.waitlist import PromotionSweepResponse
from app.services.promotion import PromotionEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


@router.post(
    "/promote-waitlists",
    response_model=PromotionSweepResponse,
    dependencies=[Depends(verify_api_key)],
)
def promote_waitlists_endpoint(
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """
    Заполняет свободные места будущих занятий из листов ожидания.
    Защищен API ключом (передается в заголовке X-API-Key).
    Вызывается планировщиком, подстраховывает продвижение после отмен.
    """
    try:
        result = PromotionEngine(db).sweep(limit=limit)
        return {
            "message": "Waitlist promotion sweep completed",
            "scanned": result["scanned"],
            "promoted": result["promoted"],
            "timestamp": datetime.now(timezone.utc),
        }
    except Exception as e:
        logger.error(f"Error in waitlist promotion sweep: {e}")
        raise HTTPException(status_code=500, detail=str(e))
