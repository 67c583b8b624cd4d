from datetime import date, datetime, timedelta, timezone
import itertools
import os

# Окружение для тестов задаем до импорта приложения: конфиг читается при импорте
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("CRON_API_KEY", "test-cron-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from app.main import app
from app.database import Base
from app.dependencies import get_db
from app.models.user import UserRole
from app.models import (
    User,
    Location,
    Member,
    MembershipPlan,
    MemberSubscription,
    PlanScope,
    AccessState,
    ClassInstance,
)
from app.crud import class_instance as class_instance_crud
from app.auth.jwt_handler import create_access_token

# URL для тестовой базы данных (SQLite-файл, пересоздается на каждый тест)
DATABASE_URL = "sqlite:///./test_database.db"

# Глобальная переменная для отслеживания первого теста
_first_test = True

_email_counter = itertools.count(1)


@pytest.fixture(scope="function")
def db_session():
    """
    Фикстура для работы с одной общей сессией базы данных внутри каждого теста.
    Первый пользователь - администратор с id=1, его же возвращает dev_token.
    """
    global _first_test

    if _first_test and os.path.exists("test_database.db"):
        os.remove("test_database.db")
        _first_test = False

    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    admin = User(
        first_name="Andrei",
        last_name="Admin",
        email="admin@example.com",
        role=UserRole.ADMIN,
    )
    session.add(admin)
    session.commit()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    """
    Тестовый клиент FastAPI с переопределением зависимости `get_db` для работы с тестовой базой данных.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers():
    """Администратор через dev_token."""
    return {"Authorization": "Bearer dev_token"}


@pytest.fixture
def api_key_headers():
    return {"X-API-Key": os.environ["CRON_API_KEY"]}


@pytest.fixture
def test_admin(db_session):
    return db_session.query(User).filter(User.email == "admin@example.com").first()


def _create_user(db_session: Session, role: UserRole, first_name: str = "Test") -> User:
    user = User(
        first_name=first_name,
        last_name="User",
        email=f"user{next(_email_counter)}@example.com",
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token({"sub": user.email, "id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# ЛОКАЦИИ И ТАРИФЫ
# =============================================================================

@pytest.fixture
def test_location(db_session) -> Location:
    location = Location(name="Центр", region="north")
    db_session.add(location)
    db_session.commit()
    db_session.refresh(location)
    return location


@pytest.fixture
def test_second_location(db_session) -> Location:
    """Другая локация того же региона."""
    location = Location(name="Северная", region="north")
    db_session.add(location)
    db_session.commit()
    db_session.refresh(location)
    return location


@pytest.fixture
def test_remote_location(db_session) -> Location:
    """Локация другого региона."""
    location = Location(name="Южная", region="south")
    db_session.add(location)
    db_session.commit()
    db_session.refresh(location)
    return location


def _create_plan(db_session: Session, name: str, scope: PlanScope) -> MembershipPlan:
    plan = MembershipPlan(name=name, scope=scope, is_active=True)
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture
def test_plan(db_session) -> MembershipPlan:
    return _create_plan(db_session, "Одна локация", PlanScope.SINGLE_LOCATION)


@pytest.fixture
def test_regional_plan(db_session) -> MembershipPlan:
    return _create_plan(db_session, "Регион", PlanScope.REGIONAL)


@pytest.fixture
def test_network_plan(db_session) -> MembershipPlan:
    return _create_plan(db_session, "Вся сеть", PlanScope.ALL_LOCATIONS)


# =============================================================================
# УЧАСТНИКИ
# =============================================================================

@pytest.fixture
def create_member(db_session, test_location, test_plan):
    """
    Фабрика участников: пользователь с ролью MEMBER, профиль и абонемент.
    access_state=None - участник без абонемента.
    """
    def _create(
        first_name: str = "Member",
        access_state=AccessState.ACTIVE,
        plan: MembershipPlan = None,
        location: Location = None,
    ) -> Member:
        user = _create_user(db_session, UserRole.MEMBER, first_name=first_name)
        member = Member(
            user_id=user.id,
            home_location_id=(location or test_location).id,
            first_name=first_name,
            last_name="Test",
        )
        db_session.add(member)
        db_session.commit()
        db_session.refresh(member)

        if access_state is not None:
            subscription = MemberSubscription(
                member_id=member.id,
                plan_id=(plan or test_plan).id,
                location_id=(location or test_location).id,
                access_state=access_state,
                created_at=datetime.now(timezone.utc),
            )
            db_session.add(subscription)
            db_session.commit()
        return member

    return _create


@pytest.fixture
def test_member(create_member) -> Member:
    return create_member("Anna")


@pytest.fixture
def test_second_member(create_member) -> Member:
    return create_member("Boris")


@pytest.fixture
def test_third_member(create_member) -> Member:
    return create_member("Clara")


@pytest.fixture
def member_headers(test_member):
    return headers_for(test_member.user)


@pytest.fixture
def test_instructor(db_session) -> User:
    return _create_user(db_session, UserRole.INSTRUCTOR, first_name="Instructor")


@pytest.fixture
def instructor_headers(test_instructor):
    return headers_for(test_instructor)


@pytest.fixture
def test_staff(db_session) -> User:
    return _create_user(db_session, UserRole.STAFF, first_name="Staff")


@pytest.fixture
def staff_headers(test_staff):
    return headers_for(test_staff)


# =============================================================================
# ЗАНЯТИЯ
# =============================================================================

@pytest.fixture
def create_class_instance(db_session, test_location):
    """
    Фабрика занятий. Время задается смещением от текущего момента (UTC).
    """
    def _create(
        capacity: int = 2,
        starts_in: timedelta = timedelta(days=1),
        duration: timedelta = timedelta(hours=1),
        location: Location = None,
        instructor_id: int = None,
        late_cancel_cutoff_minutes: int = None,
    ) -> ClassInstance:
        start_at = datetime.now(timezone.utc) + starts_in
        instance = class_instance_crud.create_class_instance(
            db_session,
            location_id=(location or test_location).id,
            class_name="Yoga",
            start_at=start_at,
            end_at=start_at + duration,
            capacity=capacity,
            instructor_id=instructor_id,
            late_cancel_cutoff_minutes=late_cancel_cutoff_minutes,
        )
        db_session.commit()
        db_session.refresh(instance)
        return instance

    return _create


@pytest.fixture
def test_class_instance(create_class_instance) -> ClassInstance:
    return create_class_instance(capacity=2)


@pytest.fixture
def today() -> date:
    return datetime.now(timezone.utc).date()
