# Doctor Profiles Feature - Models

from typing import Optional, List
from datetime import datetime
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from pymongo import ASCENDING, IndexModel
from medibook.shared.models import TimestampMixin


class Availability(BaseModel):
    """Weekly availability window."""
    days: List[str] = Field(default_factory=list)
    start_time: str = ""
    end_time: str = ""


class Rating(BaseModel):
    """Rating aggregate."""
    average: float = 0
    count: int = 0


class DoctorProfile(BaseModel):
    """Professional details of a doctor."""
    specialization: str
    department: str
    qualifications: List[str] = Field(default_factory=list)
    experience: int = 0
    consultation_fee: float = 0
    license_number: str
    license_expiry: datetime
    hospital_affiliation: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    availability: Availability = Field(default_factory=Availability)
    rating: Rating = Field(default_factory=Rating)
    is_verified: bool = False


class Doctor(Document, TimestampMixin):
    """
    Doctor document model.

    One per user. A doctor created by a role change is a stub without
    ``profile`` until an admin completes it.
    """

    user: Indexed(str, unique=True)  # References User._id
    profile: Optional[DoctorProfile] = None
    is_active: bool = True

    @property
    def is_stub(self) -> bool:
        return self.profile is None

    class Settings:
        name = "doctors"
        use_state_management = True
        keep_nulls = False
        indexes = [
            IndexModel(
                [("profile.license_number", ASCENDING)],
                unique=True,
                sparse=True,
                name="doctor_license_number_unique",
            ),
            [("profile.specialization", 1), ("profile.department", 1)],
        ]
