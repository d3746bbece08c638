# Patient Management Feature - Models

from enum import Enum
from typing import Optional, List
from datetime import datetime
from beanie import Document
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel
from medibook.shared.models import TimestampMixin


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class Insurance(BaseModel):
    """Insurance coverage window."""
    provider: str
    policy_number: str
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None


class EmergencyContact(BaseModel):
    name: str
    relationship: Optional[str] = None
    phone: str


class Patient(Document, TimestampMixin):
    """Patient document model for storing patient profiles."""

    # Ownership. ``user`` is the owning account; older records only carry
    # ``created_by`` (the account that registered them) and an email.
    user: Optional[str] = None
    created_by: Optional[str] = None

    # Personal information
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None  # Stored lower-case
    nic: Optional[str] = None  # National identity card number, stored upper-case
    phone: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None  # Male, Female, Other
    address: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None

    # Medical information
    blood_type: Optional[BloodType] = None
    allergies: List[str] = Field(default_factory=list)
    medications: List[dict] = Field(default_factory=list)  # [{name, dosage, frequency}]
    medical_history: Optional[str] = None
    insurance: Optional[Insurance] = None

    # Status
    is_active: bool = True

    class Settings:
        name = "patients"
        use_state_management = True
        keep_nulls = False
        indexes = [
            IndexModel([("email", ASCENDING)], unique=True, sparse=True, name="patient_email_unique"),
            IndexModel([("nic", ASCENDING)], unique=True, sparse=True, name="patient_nic_unique"),
            [("user", 1)],
            [("created_by", 1)],
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Sarah",
                "last_name": "Johnson",
                "email": "sarah@email.com",
                "nic": "199012345678",
                "date_of_birth": "1990-05-15T00:00:00",
                "gender": "Female",
                "blood_type": "O+",
                "allergies": ["Penicillin"],
                "medications": [
                    {"name": "Metformin", "dosage": "500mg", "frequency": "Twice daily"}
                ],
                "is_active": True
            }
        }
