"""Test configuration and fixtures."""

import os
import tempfile
from pathlib import Path

# The engine is bound at import time: point it at a scratch file first.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="dentalcare-tests-"))
os.environ["DENTAL_DB_PATH"] = str(_TMP_DIR / "dental_clinic.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from backend import auth_security
from backend.api_main import app
from backend.auth_models import Role
from backend.auth_security import create_access_token
from backend.auth_service import create_user
from backend.db import Base, engine
from backend.services import create_patient, create_treatment, init_db

# Fast hashes in tests
auth_security.pwd_context.update(bcrypt__rounds=4)


@pytest.fixture(autouse=True)
def fresh_db():
    """Empty schema for every test."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_id() -> str:
    return create_user("admin@dentalcare.com", "admin123", "Clinic", "Administrator", role=Role.ADMIN)


@pytest.fixture
def dentist_id() -> str:
    return create_user(
        "sarah.johnson@dentalcare.com",
        "dentist123",
        "Sarah",
        "Johnson",
        role=Role.DENTIST,
        specialization="General Dentistry",
    )


@pytest.fixture
def receptionist_id() -> str:
    return create_user("emily.davis@dentalcare.com", "receptionist123", "Emily", "Davis", role=Role.RECEPTIONIST)


@pytest.fixture
def patient_id() -> str:
    return create_patient("John", "Smith", phone="555-0101", email="john.smith@example.com")


@pytest.fixture
def cleaning_id() -> int:
    return create_treatment("Professional Cleaning", 120.0, duration_minutes=45, category="Preventive")


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(admin_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin_id)}"}


@pytest.fixture
def receptionist_headers(receptionist_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(receptionist_id)}"}
