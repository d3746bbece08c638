# Patient Management Feature - Schemas

from typing import Optional, List
from datetime import date, datetime
from pydantic import EmailStr, Field, model_validator
from medibook.features.patients.models import BloodType
from medibook.shared.schemas import CamelModel, Pagination


# ============== Nested Schemas ==============

class MedicationSchema(CamelModel):
    """Schema for medication information."""
    name: str
    dosage: str
    frequency: str


class InsuranceSchema(CamelModel):
    provider: str = Field(..., min_length=1)
    policy_number: str = Field(..., min_length=1)
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError("Insurance validUntil must not be before validFrom")
        return self


class EmergencyContactSchema(CamelModel):
    name: str
    relationship: Optional[str] = None
    phone: str


# ============== Create Patient ==============

class CreatePatientRequest(CamelModel):
    """
    Request schema for creating a patient profile.

    A patient onboarding themselves sends their own details; staff send the
    details of the patient they register.
    """
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    nic: Optional[str] = Field(None, min_length=1, max_length=20)
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, pattern=r'^(Male|Female|Other)$')
    address: Optional[str] = Field(None, max_length=500)
    emergency_contact: Optional[EmergencyContactSchema] = None
    blood_type: Optional[BloodType] = None
    allergies: List[str] = Field(default_factory=list)
    medications: List[MedicationSchema] = Field(default_factory=list)
    medical_history: Optional[str] = None
    insurance: Optional[InsuranceSchema] = None


# ============== Update Patient ==============

class UpdatePatientRequest(CamelModel):
    """Request schema for updating patient information."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    nic: Optional[str] = Field(None, min_length=1, max_length=20)
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, pattern=r'^(Male|Female|Other)$')
    address: Optional[str] = Field(None, max_length=500)
    emergency_contact: Optional[EmergencyContactSchema] = None
    blood_type: Optional[BloodType] = None
    allergies: Optional[List[str]] = None
    medications: Optional[List[MedicationSchema]] = None
    medical_history: Optional[str] = None
    insurance: Optional[InsuranceSchema] = None


# ============== Patient Response ==============

class PatientResponse(CamelModel):
    """Response schema for patient data."""
    id: str
    user: Optional[str] = None
    created_by: Optional[str] = None
    first_name: str
    last_name: str
    email: Optional[str] = None
    nic: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[EmergencyContactSchema] = None
    blood_type: Optional[BloodType] = None
    allergies: List[str] = []
    medications: List[dict] = []
    medical_history: Optional[str] = None
    insurance: Optional[InsuranceSchema] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PatientListResponse(CamelModel):
    """Response schema for list of patients."""
    patients: List[PatientResponse]
    pagination: Pagination
