"""Pytest fixtures for testing"""

import os

os.environ.setdefault("STUDIO_DATABASE_URL", "sqlite://")
os.environ.setdefault("STUDIO_SCHEDULER_ENABLED", "false")
os.environ.setdefault("STUDIO_JWT_SECRET", "test-secret")

from typing import Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studio.core.database import Base, get_db
from studio.core.security import create_access_token
from studio.main import create_app
from studio.models import EnrollmentType, Organization, Student
from studio.services import organization_service
from studio.utils.datetime import month_start, utcnow

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"

# Test database
engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Session factory bound to the test database"""
    return TestingSessionLocal


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def organization(db: Session) -> Organization:
    """Organization owned by OWNER_ID with default settings"""
    org = organization_service.create_organization(db, name="Studio Centro", owner_user_id=OWNER_ID)
    db.commit()
    return org


@pytest.fixture
def other_organization(db: Session) -> Organization:
    """Organization the default user does not belong to"""
    org = organization_service.create_organization(db, name="Studio Bairro", owner_user_id=OTHER_OWNER_ID)
    db.commit()
    return org


@pytest.fixture
def auth_headers(organization: Organization) -> Dict[str, str]:
    """Bearer token for OWNER_ID scoped to the default organization"""
    token = create_access_token(OWNER_ID)
    return {"Authorization": f"Bearer {token}", "X-Organization-Id": str(organization.id)}


@pytest.fixture
def make_student(db: Session, organization: Organization) -> Callable[..., Student]:
    """Factory for students whose credits were already renewed this month"""

    def _make(
        name: str,
        *,
        enrollment_type: EnrollmentType = EnrollmentType.PARTICULAR,
        credits: int = 0,
        **fields,
    ) -> Student:
        fields.setdefault("last_credit_renewal", month_start(utcnow().date()))
        student = Student(
            organization_id=organization.id,
            name=name,
            enrollment_type=enrollment_type,
            reposition_credits=credits,
            **fields,
        )
        db.add(student)
        db.commit()
        return student

    return _make
