import logging

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.endpoints import (
    bookings,
    waitlist,
    class_instances,
    capacity,
    memberships,
    cron,
)

logging.basicConfig(level=logging.DEBUG) # Ensure basic config is debug

# Create a logger for the application
logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)

# Create a console handler and set its level to DEBUG
ch = logging.StreamHandler()
ch.setLevel(logging.DEBUG)

formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
ch.setFormatter(formatter)
logger.addHandler(ch)

logger.info("Application started and logger configured.")


app = FastAPI(
    title="Class Booking API",
    description="API для записи на групповые занятия, листов ожидания и лимитов локаций",
    version="1.0.0"
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Регистрация маршрутов
app.include_router(bookings.router)
app.include_router(waitlist.router)
app.include_router(class_instances.router)
app.include_router(capacity.router)
app.include_router(memberships.router)
app.include_router(cron.router)


@app.get("/healthz")
async def healthz():
    return {"message": "Healthy!"}


# Обработка ошибок валидации
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        if 'ctx' in error and 'error' in error['ctx']:
            # Если ошибка содержит ValueError, берем его сообщение
            if isinstance(error['ctx']['error'], ValueError):
                error['msg'] = str(error['ctx']['error'])
                del error['ctx']  # ctx содержит несериализуемые объекты
        errors.append(error)

    return JSONResponse(
        status_code=422,
        content={"detail": errors},
    )


# Проверка подключения к базе данных
@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return {"status": "unhealthy", "database": "disconnected"}
