from fastapi import Security, HTTPException
from fastapi.security.api_key import APIKeyHeader
from starlette.status import HTTP_403_FORBIDDEN

from app.config import config

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)):
    """
    Проверяет API ключ для системных эндпоинтов (планировщик, биллинг).
    Использование:
    @router.post("/endpoint", dependencies=[Depends(verify_api_key)])
    """
    if not api_key or not config.CRON_API_KEY or api_key != config.CRON_API_KEY:
        raise HTTPException(
            status_code=HTTP_403_FORBIDDEN,
            detail="Could not validate API key"
        )
    return api_key
