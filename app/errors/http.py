from typing import Union

from fastapi import HTTPException

from app.errors.booking_errors import BookingError
from app.errors.capacity_errors import CapacityError


def http_error(error: Union[BookingError, CapacityError]) -> HTTPException:
    """Доменная ошибка -> HTTPException с кодом ошибки в detail."""
    return HTTPException(
        status_code=error.status_code,
        detail={"error": error.code, "message": str(error)},
    )
