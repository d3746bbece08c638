# Doctor Profiles Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import Field, field_validator
from medibook.features.doctors.models import Rating
from medibook.shared.schemas import CamelModel, Pagination


class AvailabilitySchema(CamelModel):
    days: List[str] = Field(default_factory=list)
    start_time: str = ""
    end_time: str = ""


class CreateDoctorRequest(CamelModel):
    """Request schema for completing a doctor's profile."""
    user_id: str = Field(..., min_length=1)
    specialization: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    qualifications: List[str] = Field(default_factory=list)
    experience: int = Field(0, ge=0)
    consultation_fee: float = Field(0, ge=0)
    license_number: str = Field(..., min_length=1)
    license_expiry: datetime
    hospital_affiliation: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    availability: Optional[AvailabilitySchema] = None

    @field_validator("license_number")
    @classmethod
    def normalize_license(cls, v: str) -> str:
        return v.strip().upper()


class DoctorResponse(CamelModel):
    """Doctor profile with the owning user's name and email."""
    id: str
    user: str
    name: str = ""
    email: Optional[str] = None
    specialization: Optional[str] = None
    department: Optional[str] = None
    qualifications: List[str] = Field(default_factory=list)
    experience: int = 0
    consultation_fee: float = 0
    license_number: Optional[str] = None
    license_expiry: Optional[datetime] = None
    hospital_affiliation: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    availability: Optional[AvailabilitySchema] = None
    rating: Optional[Rating] = None
    is_verified: bool = False
    is_stub: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class DoctorListResponse(CamelModel):
    doctors: List[DoctorResponse]
    pagination: Pagination
