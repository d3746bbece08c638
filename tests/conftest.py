import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Awaitable, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from medibook.main import app
from medibook.database import init_models
from medibook.core.security import create_access_token
from medibook.features.auth.models import User, Role, UserStatus
from medibook.features.doctors.models import Doctor, DoctorProfile
from medibook.features.patients.models import Patient


@pytest.fixture(scope="function")
async def db():
    """Fresh in-memory database with every document model initialised."""
    client = AsyncMongoMockClient()
    database = client[f"medibook_test_{uuid.uuid4().hex}"]
    await init_models(database)
    yield database


@pytest.fixture(scope="function")
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client driving the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict:
    """Bearer header for the user, as the identity provider would issue it."""
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def future_date(days: int = 7) -> str:
    return (datetime.utcnow().date() + timedelta(days=days)).isoformat()


def past_date(days: int = 1) -> str:
    return (datetime.utcnow().date() - timedelta(days=days)).isoformat()


@pytest.fixture(scope="function")
def make_user(db) -> Callable[..., Awaitable[User]]:
    """Factory inserting users directly, bypassing the admin endpoints."""

    async def factory(
        role: Role = Role.PATIENT,
        email: Optional[str] = None,
        name: str = "Test User",
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        user = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            name=name,
            role=role,
            status=status,
        )
        await user.insert()
        return user

    return factory


@pytest.fixture(scope="function")
def make_patient(make_user) -> Callable[..., Awaitable[tuple]]:
    """Factory for a PATIENT user with a completed patient profile."""

    async def factory(first_name: str = "Sarah", last_name: str = "Johnson") -> tuple:
        user = await make_user(Role.PATIENT, name=f"{first_name} {last_name}")
        patient = Patient(
            user=str(user.id),
            created_by=str(user.id),
            first_name=first_name,
            last_name=last_name,
            email=str(user.email),
            phone="+94771234567",
        )
        await patient.insert()
        return user, patient

    return factory


@pytest.fixture(scope="function")
def make_doctor(make_user) -> Callable[..., Awaitable[tuple]]:
    """Factory for a DOCTOR user with a completed doctor profile."""

    async def factory(name: str = "Dr. Gregory House", license_number: Optional[str] = None) -> tuple:
        user = await make_user(Role.DOCTOR, name=name)
        doctor = Doctor(
            user=str(user.id),
            profile=DoctorProfile(
                specialization="Cardiology",
                department="Cardiology",
                consultation_fee=2500,
                license_number=license_number or f"SLMC-{uuid.uuid4().hex[:6].upper()}",
                license_expiry=datetime.utcnow() + timedelta(days=365),
            ),
        )
        await doctor.insert()
        return user, doctor

    return factory


@pytest.fixture(scope="function")
async def admin_user(make_user) -> User:
    return await make_user(Role.ADMIN, email="admin@example.com", name="Admin User")


@pytest.fixture(scope="function")
async def receptionist_user(make_user) -> User:
    return await make_user(Role.RECEPTIONIST, email="frontdesk@example.com", name="Front Desk")


@pytest.fixture(scope="function")
def booking_payload() -> Callable[..., dict]:
    def factory(doctor: Doctor, **overrides) -> dict:
        payload = {
            "doctorId": str(doctor.id),
            "appointmentDate": future_date(),
            "appointmentTime": "10:00",
            "reason": "checkup",
        }
        payload.update(overrides)
        return payload

    return factory
