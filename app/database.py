from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from contextlib import contextmanager
import os

from app.config import config  # Создаем подключение к базе

engine = create_engine(config.SQLALCHEMY_DATABASE_URI, pool_pre_ping=True)

# Создаем сессию для работы с базой данных
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Базовый класс для всех моделей
Base = declarative_base()


from sqlalchemy.orm import Session

@contextmanager
def transactional(db: Session):
    """
    A context manager for handling database transactions that is aware of the testing environment.

    In production, it commits or rolls back the transaction.
    In testing, it only flushes the session, leaving the final commit/rollback
    to the test runner's transactional fixture.

    Row locks taken inside the block (``with_for_update``) are held until the
    commit, so everything a booking decision depends on must be read here.
    """
    is_test_mode = os.getenv("TESTING", "false").lower() == "true"

    if not is_test_mode:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
    else:
        # Testing behavior: no commits, just flush
        try:
            yield db
            db.flush()
        except Exception:
            db.rollback()
            raise
