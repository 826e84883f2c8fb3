# backend/tests/conftest.py
"""
Pytest configuration for the MasterBook backend.

Tests run against an in-memory SQLite database shared through a StaticPool,
so the test session and the request sessions see the same data. Tables are
created and dropped around every test.
"""

import os

# Set BEFORE any masterbook import: settings and the engine read these at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATION_PROVIDER"] = "console"
os.environ["CI"] = "true"  # skip .env loading
os.environ.pop("BOOKING_LOCK_REDIS_URL", None)

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from masterbook.api.dependencies.database import get_db
from masterbook.api.dependencies.services import get_notification_service
from masterbook.auth import create_access_token
from masterbook.core.enums import RoleName
from masterbook.database import Base
from masterbook.main import app
from masterbook.models.profiles import MasterProfile, StudentProfile
from masterbook.models.user import User
from masterbook.services.notification_provider import ConsoleNotificationProvider
from masterbook.services.notification_service import NotificationService

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False)

# Monday; the default template opens Mon-Fri 09:00-18:00
MONDAY = date(2030, 1, 7)
SATURDAY = date(2030, 1, 12)


# ============================================================================
# Helper Functions
# ============================================================================


def create_master(
    db: Session,
    email: str,
    full_name: str = "Test Master",
    specialties: Iterable[str] = ("Tennis",),
    hourly_rate: str = "60.00",
    location: str = "Barcelona",
    availability: Optional[Dict[str, Any]] = None,
) -> User:
    user = User(email=email, full_name=full_name, role=RoleName.MASTER.value, is_active=True)
    db.add(user)
    db.flush()
    db.add(
        MasterProfile(
            user_id=user.id,
            bio=f"{full_name} teaches {', '.join(specialties)}",
            specialties=list(specialties),
            hourly_rate=Decimal(hourly_rate),
            location=location,
            availability=availability,
        )
    )
    db.commit()
    db.refresh(user)
    return user


def create_student(
    db: Session,
    email: str,
    full_name: str = "Test Student",
    preferred_sports: Iterable[str] = ("tennis",),
    skill_level: str = "BEGINNER",
) -> User:
    user = User(email=email, full_name=full_name, role=RoleName.STUDENT.value, is_active=True)
    db.add(user)
    db.flush()
    db.add(StudentProfile(user_id=user.id, preferred_sports=list(preferred_sports), skill_level=skill_level))
    db.commit()
    db.refresh(user)
    return user


def auth_headers_for(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def db() -> Session:
    """Fresh schema and session per test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def notification_provider() -> ConsoleNotificationProvider:
    return ConsoleNotificationProvider()


@pytest.fixture
def notification_service(notification_provider: ConsoleNotificationProvider) -> NotificationService:
    return NotificationService(provider=notification_provider, timeout_seconds=2.0)


@pytest.fixture
def client(db: Session, notification_service: NotificationService) -> TestClient:
    """TestClient wired to the test session and an in-memory notifier."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def master(db: Session) -> User:
    return create_master(db, "master@example.com", full_name="Rafa Master")


@pytest.fixture
def other_master(db: Session) -> User:
    return create_master(db, "other.master@example.com", full_name="Other Master", specialties=("Padel",))


@pytest.fixture
def student(db: Session) -> User:
    return create_student(db, "student@example.com", full_name="Sam Student")


@pytest.fixture
def other_student(db: Session) -> User:
    return create_student(db, "other.student@example.com", full_name="Olga Other", preferred_sports=("golf",))


@pytest.fixture
def auth_headers_master(master: User) -> Dict[str, str]:
    return auth_headers_for(master)


@pytest.fixture
def auth_headers_student(student: User) -> Dict[str, str]:
    return auth_headers_for(student)


@pytest.fixture
def auth_headers_other_student(other_student: User) -> Dict[str, str]:
    return auth_headers_for(other_student)


@pytest.fixture
def tennis_students(db: Session) -> List[User]:
    """Eight students interested in tennis, none of them booked."""
    return [
        create_student(db, f"tennis{i}@example.com", full_name=f"Tennis Fan {i}", preferred_sports=("Tennis",))
        for i in range(8)
    ]
