"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all CareSync tests.
Fixtures include database sessions, test clients, users, medications
and caregiver relationships.
"""

import os
import sys
from datetime import datetime, date, timedelta
from typing import Callable, Dict, Generator

# Keep the application engine off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from models import (
    User, Medication, CaregiverPatient, AdherenceRecord,
    UserRole, AdherenceStatus
)
from app import app


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a test database session"""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine
    )

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database override"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth() -> Callable[[User], Dict[str, str]]:
    """Identity headers for a user, as the auth gateway would send them"""
    def _headers(user: User) -> Dict[str, str]:
        return {"X-User-Id": str(user.id)}
    return _headers


# ==================== USER FIXTURES ====================

def _make_user(session: Session, email: str, first: str, last: str, role: UserRole) -> User:
    user = User(email=email, first_name=first, last_name=last, role=role, is_active=True)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def test_patient(db_session: Session) -> User:
    """Create and return a test patient"""
    return _make_user(db_session, "john.doe@example.com", "John", "Doe", UserRole.PATIENT)


@pytest.fixture
def other_patient(db_session: Session) -> User:
    """A second patient with no relationship to anyone"""
    return _make_user(db_session, "mary.major@example.com", "Mary", "Major", UserRole.PATIENT)


@pytest.fixture
def test_caregiver(db_session: Session) -> User:
    """Create and return a test caregiver"""
    return _make_user(db_session, "carol.care@example.com", "Carol", "Care", UserRole.CAREGIVER)


@pytest.fixture
def test_admin(db_session: Session) -> User:
    return _make_user(db_session, "admin@example.com", "Ada", "Admin", UserRole.ADMIN)


@pytest.fixture
def test_provider(db_session: Session) -> User:
    return _make_user(db_session, "dr.who@example.com", "Doc", "Who", UserRole.HEALTHCARE_PROVIDER)


# ==================== MEDICATION FIXTURES ====================

@pytest.fixture
def sample_medication_data() -> Dict:
    """Sample medication data for creating test medications"""
    return {
        "name": "Metformin",
        "dosage": "500",
        "dosage_unit": "mg",
        "frequency": "2x daily",
        "times_per_day": 2,
        "total_quantity": 60,
        "remaining_quantity": 60,
        "instructions": "Take with meals",
        "is_active": True,
        "start_date": date.today(),
    }


@pytest.fixture
def test_medication(db_session: Session, test_patient: User, sample_medication_data: Dict) -> Medication:
    """Create and return a test medication owned by the test patient"""
    medication = Medication(user_id=test_patient.id, **sample_medication_data)
    db_session.add(medication)
    db_session.commit()
    db_session.refresh(medication)
    return medication


@pytest.fixture
def low_stock_medication(db_session: Session, test_patient: User) -> Medication:
    """Twice-daily medication with exactly a week of supply left"""
    medication = Medication(
        user_id=test_patient.id,
        name="Lisinopril",
        dosage="10",
        dosage_unit="mg",
        frequency="2x daily",
        times_per_day=2,
        total_quantity=30,
        remaining_quantity=14,
        start_date=date.today(),
        is_active=True
    )
    db_session.add(medication)
    db_session.commit()
    db_session.refresh(medication)
    return medication


# ==================== RELATIONSHIP FIXTURES ====================

@pytest.fixture
def verified_link(db_session: Session, test_caregiver: User, test_patient: User) -> CaregiverPatient:
    """Accepted, active caregiver relationship"""
    link = CaregiverPatient(
        caregiver_id=test_caregiver.id,
        patient_id=test_patient.id,
        relationship_type="family",
        permissions={"viewMedications": True},
        is_verified=True,
        is_active=True
    )
    db_session.add(link)
    db_session.commit()
    db_session.refresh(link)
    return link


@pytest.fixture
def pending_link(db_session: Session, test_caregiver: User, test_patient: User) -> CaregiverPatient:
    """Invitation not yet accepted"""
    link = CaregiverPatient(
        caregiver_id=test_caregiver.id,
        patient_id=test_patient.id,
        relationship_type="family",
        permissions={"viewMedications": True},
        is_verified=False,
        is_active=True
    )
    db_session.add(link)
    db_session.commit()
    db_session.refresh(link)
    return link


# ==================== ADHERENCE FIXTURES ====================

@pytest.fixture
def adherence_history(db_session: Session, test_patient: User, test_medication: Medication):
    """Seven days of records: five taken, two missed"""
    records = []
    base_time = datetime.utcnow().replace(second=0, microsecond=0) - timedelta(minutes=1)
    pattern = [True, True, False, True, True, True, False]

    for i, taken in enumerate(pattern):
        moment = base_time - timedelta(days=6 - i)
        record = AdherenceRecord(
            user_id=test_patient.id,
            medication_id=test_medication.id,
            status=AdherenceStatus.TAKEN if taken else AdherenceStatus.MISSED,
            scheduled_time=moment,
            taken_at=moment
        )
        db_session.add(record)
        records.append(record)

    db_session.commit()
    for record in records:
        db_session.refresh(record)
    return records


# ==================== MARKERS ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
