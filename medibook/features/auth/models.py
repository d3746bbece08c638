from enum import Enum
from beanie import Document, Indexed
from pydantic import EmailStr
from typing import Optional
from datetime import datetime
from medibook.shared.models import TimestampMixin


class Role(str, Enum):
    """User roles."""

    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    PATIENT = "PATIENT"
    RECEPTIONIST = "RECEPTIONIST"
    NURSE = "NURSE"
    PHARMACIST = "PHARMACIST"


class UserStatus(str, Enum):
    """Account status. Users are deactivated, never removed."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


# Roles with unrestricted access to appointments and patient records
STAFF_ROLES = frozenset({Role.ADMIN, Role.RECEPTIONIST})


class User(Document, TimestampMixin):
    """User document model."""

    email: Indexed(EmailStr, unique=True)
    name: str
    phone: Optional[str] = None
    image: Optional[str] = None
    password_hash: Optional[str] = None

    role: Role = Role.PATIENT
    status: UserStatus = UserStatus.ACTIVE
    is_email_verified: bool = False
    last_login: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    class Settings:
        name = "users"
        use_state_management = True
        keep_nulls = False

    class Config:
        json_schema_extra = {
            "example": {
                "email": "admin@example.com",
                "name": "John Doe",
                "phone": "+1234567890",
                "role": "ADMIN",
            }
        }
