# Appointments Feature - Access Control

from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple
from beanie import PydanticObjectId
from bson import ObjectId
from medibook.features.auth.models import User, Role, STAFF_ROLES
from medibook.features.doctors.models import Doctor
from medibook.features.patients.models import Patient
from medibook.features.appointments.models import Appointment
from medibook.features.appointments.schemas import UpdateAppointmentRequest
from medibook.core.logging import logger
from medibook.shared.exceptions import ForbiddenException


PATIENT_WRITABLE_FIELDS = frozenset({"reason", "symptoms", "notes"})

DOCTOR_WRITABLE_FIELDS = frozenset({
    "diagnosis",
    "prescription",
    "notes",
    "symptoms",
    "status",
    "vital_signs",
    "follow_up_date",
})

STAFF_WRITABLE_FIELDS = frozenset({
    "appointment_date",
    "appointment_time",
    "duration",
    "type",
    "status",
    "reason",
    "symptoms",
    "diagnosis",
    "prescription",
    "notes",
    "doctor",
    "pharmacist",
})

WRITABLE_FIELDS: Dict[Role, FrozenSet[str]] = {
    Role.PATIENT: PATIENT_WRITABLE_FIELDS,
    Role.DOCTOR: DOCTOR_WRITABLE_FIELDS,
    Role.ADMIN: STAFF_WRITABLE_FIELDS,
    Role.RECEPTIONIST: STAFF_WRITABLE_FIELDS,
}


def writable_fields(role: Role) -> FrozenSet[str]:
    """Appointment fields the role may write. Unknown roles write nothing."""
    return WRITABLE_FIELDS.get(role, frozenset())


def scope_update(role: Role, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only the payload entries the role may write.

    Keys may be given camelCase (as on the wire) or snake_case. Everything
    else is dropped without error. The result is keyed by field name.
    """
    allowed = writable_fields(role)
    scoped: Dict[str, Any] = {}

    for name, field in UpdateAppointmentRequest.model_fields.items():
        if name not in allowed:
            continue
        alias = field.alias or name
        if alias in payload:
            scoped[name] = payload[alias]
        elif name in payload:
            scoped[name] = payload[name]

    return scoped


def can_see_pharmacist(role: Role) -> bool:
    return role in STAFF_ROLES or role == Role.PHARMACIST


# ============== Patient ownership ==============
#
# Patient records have been linked to accounts in several ways over time.
# The strategies below are tried in order and the first match wins. The
# email fallback only exists for records imported before ``user`` existed.

OwnerStrategy = Callable[[Patient, User], bool]


def _owned_through_user_ref(patient: Patient, user: User) -> bool:
    return patient.user is not None and patient.user == str(user.id)


def _owned_through_created_by(patient: Patient, user: User) -> bool:
    return patient.created_by is not None and patient.created_by == str(user.id)


def _owned_through_email(patient: Patient, user: User) -> bool:
    if not patient.email or not user.email:
        return False
    return patient.email.lower() == str(user.email).lower()


PATIENT_OWNER_STRATEGIES: Tuple[Tuple[str, OwnerStrategy], ...] = (
    ("user", _owned_through_user_ref),
    ("created_by", _owned_through_created_by),
    ("email", _owned_through_email),
)


def resolve_patient_owner(patient: Patient, user: User) -> Optional[str]:
    """Name of the first ownership strategy linking the patient to the user."""
    for name, strategy in PATIENT_OWNER_STRATEGIES:
        if strategy(patient, user):
            return name
    return None


class AppointmentAccessPolicy:
    """Decides whether a user may see or change a single appointment."""

    @staticmethod
    async def check_access(user: User, appointment: Appointment) -> bool:
        if user.is_staff:
            return True

        if user.role == Role.DOCTOR:
            doctor = await Doctor.find_one(Doctor.user == str(user.id))
            return doctor is not None and str(doctor.id) == appointment.doctor

        if user.role == Role.PHARMACIST:
            return appointment.pharmacist is not None and appointment.pharmacist == str(user.id)

        if user.role == Role.PATIENT:
            if not ObjectId.is_valid(appointment.patient):
                return False
            patient = await Patient.get(PydanticObjectId(appointment.patient))
            if patient is None:
                return False
            matched_by = resolve_patient_owner(patient, user)
            if matched_by == "email":
                logger.debug(f"Patient {patient.id} matched user {user.id} by email fallback")
            return matched_by is not None

        return False

    @staticmethod
    async def ensure_access(user: User, appointment: Appointment) -> None:
        """Raise ForbiddenException when the user may not touch the appointment."""
        if not await AppointmentAccessPolicy.check_access(user, appointment):
            logger.warning(
                f"Denied {user.role.value} user {user.id} access to appointment {appointment.id}"
            )
            raise ForbiddenException(
                "You do not have permission to access this appointment",
                code="no-access",
            )
