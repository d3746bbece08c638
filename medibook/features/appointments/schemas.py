# Appointments Feature - Schemas

from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from medibook.features.appointments.models import AppointmentType, AppointmentStatus
from medibook.shared.schemas import CamelModel, Pagination


# ============== Booking ==============

class BookAppointmentRequest(CamelModel):
    """Request schema for a patient booking an appointment for themselves."""
    doctor_id: str = Field(..., min_length=1)
    appointment_date: str = Field(..., description="Calendar date, e.g. 2025-06-01")
    appointment_time: str = Field(..., description="Time of day as HH:MM")
    reason: str = Field(..., min_length=1, max_length=1000)
    symptoms: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)
    type: Optional[str] = Field(None, description="Defaults to CONSULTATION")
    duration: int = Field(30, ge=5, le=480, description="Minutes")

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason is required")
        return v.strip()

    model_config = {
        "json_schema_extra": {
            "example": {
                "doctorId": "665f1c2e9b1e8a3d4c5b6a79",
                "appointmentDate": "2025-06-01",
                "appointmentTime": "10:00",
                "reason": "checkup",
                "type": "CONSULTATION",
                "duration": 30,
            }
        }
    }


class CreateAppointmentRequest(BookAppointmentRequest):
    """Request schema for staff creating an appointment on behalf of a patient."""
    patient_id: str = Field(..., min_length=1)
    status: Optional[str] = None
    pharmacist: Optional[str] = None


# ============== Update ==============

class UpdateAppointmentRequest(CamelModel):
    """
    Partial update of an appointment.

    Which of these fields a caller may actually write depends on their role;
    see ``WRITABLE_FIELDS`` in the access module.
    """
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    duration: Optional[int] = None
    type: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=1000)
    symptoms: Optional[str] = Field(None, max_length=2000)
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)
    doctor: Optional[str] = None
    pharmacist: Optional[str] = None
    vital_signs: Optional[Dict[str, Any]] = None
    follow_up_date: Optional[str] = None


# ============== Responses ==============

class PatientSummary(CamelModel):
    """Patient details shown alongside an appointment."""
    id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None


class DoctorSummary(CamelModel):
    """Doctor details shown alongside an appointment."""
    id: str
    name: str = ""
    email: Optional[str] = None
    specialization: str = ""
    department: str = ""
    consultation_fee: float = 0


class AppointmentResponse(CamelModel):
    """Appointment projection returned to callers."""
    id: str
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None
    pharmacist: Optional[str] = None
    appointment_date: str
    appointment_time: str
    duration: int
    type: AppointmentType
    status: AppointmentStatus
    reason: str
    symptoms: str = ""
    diagnosis: str = ""
    prescription: str = ""
    notes: str = ""
    vital_signs: Optional[Dict[str, Any]] = None
    follow_up_date: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    """Paginated list of appointments."""
    appointments: List[AppointmentResponse]
    pagination: Pagination
