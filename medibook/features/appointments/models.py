# Appointments Feature - Models

from enum import Enum
from typing import Optional, Any, Dict
from datetime import datetime
from beanie import Document, Indexed
from pydantic import Field
from medibook.shared.models import TimestampMixin


class AppointmentType(str, Enum):
    CONSULTATION = "CONSULTATION"
    FOLLOW_UP = "FOLLOW_UP"
    CHECK_UP = "CHECK_UP"
    EMERGENCY = "EMERGENCY"
    ROUTINE = "ROUTINE"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Appointments in these states do not occupy their slot
RELEASED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


def slot_key(doctor_id: str, appointment_date: datetime, appointment_time: str) -> str:
    """Key identifying a (doctor, date, time) slot."""
    return f"{doctor_id}|{appointment_date.date().isoformat()}|{appointment_time}"


class Appointment(Document, TimestampMixin):
    """
    Appointment document model.

    ``appointment_date`` holds the calendar date at midnight; the time of day
    lives in ``appointment_time`` (HH:MM). Cancelling never removes the
    document, it clears ``is_active``.
    """

    patient: str  # References Patient._id
    doctor: str  # References Doctor._id
    pharmacist: Optional[str] = None  # References User._id

    appointment_date: datetime
    appointment_time: str
    duration: int = 30

    type: AppointmentType = AppointmentType.CONSULTATION
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    reason: str
    symptoms: str = ""
    diagnosis: str = ""
    prescription: str = ""
    notes: str = ""
    vital_signs: Optional[Dict[str, Any]] = None
    follow_up_date: Optional[datetime] = None

    is_active: bool = True

    @property
    def holds_slot(self) -> bool:
        return self.is_active and self.status not in RELEASED_STATUSES

    @property
    def current_slot_key(self) -> Optional[str]:
        if not self.holds_slot:
            return None
        return slot_key(self.doctor, self.appointment_date, self.appointment_time)

    class Settings:
        name = "appointments"
        use_state_management = True
        keep_nulls = False
        indexes = [
            [("doctor", 1), ("appointment_date", 1), ("appointment_time", 1)],
            [("patient", 1), ("is_active", 1), ("appointment_date", -1)],
            [("pharmacist", 1)],
        ]


class AppointmentSlot(Document):
    """
    Reservation of a (doctor, date, time) slot.

    The unique index on ``key`` is what prevents double booking: exactly one
    reservation exists per slot while an appointment holds it.
    """

    key: Indexed(str, unique=True)
    appointment_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "appointment_slots"
