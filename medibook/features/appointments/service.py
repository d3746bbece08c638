# Appointments Feature - Service

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar
from datetime import datetime
from beanie import PydanticObjectId
from beanie.operators import In, NotIn, Or
from bson import ObjectId
from pydantic import ValidationError
from medibook.features.auth.models import User, Role
from medibook.features.doctors.models import Doctor
from medibook.features.patients.models import Patient
from medibook.features.patients.service import PatientService
from medibook.features.appointments.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    RELEASED_STATUSES,
)
from medibook.features.appointments.schemas import (
    BookAppointmentRequest,
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
    AppointmentResponse,
    PatientSummary,
    DoctorSummary,
)
from medibook.features.appointments.access import (
    AppointmentAccessPolicy,
    can_see_pharmacist,
    scope_update,
)
from medibook.features.appointments.slots import SlotReservations, slot_taken
from medibook.core.logging import logger
from medibook.shared.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
)


TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

MIN_DURATION = 5
MAX_DURATION = 480

EnumT = TypeVar("EnumT", bound=Enum)

# Update fields where an explicit null means "leave unchanged"
IGNORE_NULL_FIELDS = frozenset({
    "doctor",
    "appointment_date",
    "appointment_time",
    "type",
    "status",
    "duration",
    "reason",
})

# Free-text fields where an explicit null clears the text
TEXT_FIELDS = frozenset({"symptoms", "diagnosis", "prescription", "notes"})


# ============== Parsing helpers ==============

def parse_calendar_date(value: Any) -> Optional[datetime]:
    """
    Parse an ISO calendar date into a midnight datetime.

    A full date-time is accepted and truncated to its date. Returns None when
    the value is not a real date.
    """
    if isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    return datetime(parsed.year, parsed.month, parsed.day)


def normalize_time(value: Any) -> Optional[str]:
    """Normalize a 24h ``H:MM`` / ``HH:MM`` time to ``HH:MM``; None if invalid."""
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def parse_enum(enum_cls: Type[EnumT], value: Any) -> Optional[EnumT]:
    """Case-insensitive enum lookup; None if the value is not a member."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return None


def _object_id(value: Optional[str]) -> Optional[PydanticObjectId]:
    if not value or not ObjectId.is_valid(value):
        return None
    return PydanticObjectId(value)


def _field_error(field: str, code: str, message: str) -> Dict[str, str]:
    return {"field": field, "code": code, "message": message}


def _raise_field_errors(errors: List[Dict[str, str]]) -> None:
    """Report every failing field; a single failure keeps its own code."""
    if not errors:
        return
    if len(errors) == 1:
        raise BadRequestException(errors[0]["message"], code=errors[0]["code"], details=errors)
    raise BadRequestException("Validation failed", code="validation-error", details=errors)


class AppointmentService:
    """Service class for appointment booking and management."""

    # ============== Lookups ==============

    @staticmethod
    async def get_doctor(doctor_id: str) -> Doctor:
        object_id = _object_id(doctor_id)
        doctor = await Doctor.get(object_id) if object_id else None
        if doctor is None or not doctor.is_active:
            raise NotFoundException("Doctor not found", code="doctor-missing")
        return doctor

    @staticmethod
    async def get_patient(patient_id: str) -> Patient:
        object_id = _object_id(patient_id)
        patient = await Patient.get(object_id) if object_id else None
        if patient is None or not patient.is_active:
            raise NotFoundException("Patient not found", code="patient-missing")
        return patient

    @staticmethod
    async def get_appointment(appointment_id: str) -> Appointment:
        """Get an appointment by id, cancelled ones included."""
        object_id = _object_id(appointment_id)
        if object_id is None:
            raise BadRequestException("Invalid appointment id", code="invalid-id")

        appointment = await Appointment.get(object_id)
        if appointment is None:
            raise NotFoundException("Appointment not found", code="appointment-missing")
        return appointment

    @staticmethod
    async def find_conflict(
        doctor_id: str,
        appointment_date: datetime,
        appointment_time: str,
        exclude_id: Optional[PydanticObjectId] = None,
    ) -> Optional[Appointment]:
        """Active appointment already holding the doctor's slot, if any."""
        query = Appointment.find(
            Appointment.doctor == doctor_id,
            Appointment.appointment_date == appointment_date,
            Appointment.appointment_time == appointment_time,
            Appointment.is_active == True,
            NotIn(Appointment.status, [s.value for s in RELEASED_STATUSES]),
        )
        if exclude_id is not None:
            query = query.find(Appointment.id != exclude_id)
        return await query.first_or_none()

    # ============== Create ==============

    @staticmethod
    async def book_appointment(user: User, request: BookAppointmentRequest) -> Appointment:
        """Book an appointment for the calling patient."""
        patient = await PatientService.get_profile_for_user(user)
        if patient is None:
            raise NotFoundException(
                "Patient profile not found. Please complete onboarding first.",
                code="profile-missing",
            )

        appointment = await AppointmentService._create(
            patient,
            request,
            initial_status=AppointmentStatus.SCHEDULED,
            pharmacist=None,
        )
        logger.info(f"Patient user {user.id} booked appointment {appointment.id}")
        return appointment

    @staticmethod
    async def create_appointment(user: User, request: CreateAppointmentRequest) -> Appointment:
        """Create an appointment on behalf of a patient (staff only)."""
        patient = await AppointmentService.get_patient(request.patient_id)

        initial_status = AppointmentStatus.SCHEDULED
        if request.status is not None:
            initial_status = parse_enum(AppointmentStatus, request.status)
            if initial_status is None:
                raise BadRequestException("Invalid appointment status", code="invalid-status")

        appointment = await AppointmentService._create(
            patient,
            request,
            initial_status=initial_status,
            pharmacist=request.pharmacist or None,
        )
        logger.info(f"Staff user {user.id} created appointment {appointment.id} for patient {patient.id}")
        return appointment

    @staticmethod
    async def _create(
        patient: Patient,
        request: BookAppointmentRequest,
        initial_status: AppointmentStatus,
        pharmacist: Optional[str],
    ) -> Appointment:
        doctor = await AppointmentService.get_doctor(request.doctor_id)

        appointment_date = parse_calendar_date(request.appointment_date)
        appointment_time = normalize_time(request.appointment_time)
        _raise_field_errors([
            error for error in (
                None if appointment_date else _field_error(
                    "appointmentDate", "invalid-date", "Invalid appointment date"
                ),
                None if appointment_time else _field_error(
                    "appointmentTime", "invalid-time", "Invalid appointment time, expected HH:MM"
                ),
            ) if error
        ])

        if appointment_date.date() < datetime.utcnow().date():
            raise BadRequestException("Cannot book appointments in the past", code="date-in-past")

        doctor_id = str(doctor.id)
        holds_slot = initial_status not in RELEASED_STATUSES
        if holds_slot and await AppointmentService.find_conflict(doctor_id, appointment_date, appointment_time):
            logger.warning(f"Slot {doctor_id} {appointment_date.date()} {appointment_time} already booked")
            raise slot_taken()

        appointment_type = AppointmentType.CONSULTATION
        if request.type is not None:
            appointment_type = parse_enum(AppointmentType, request.type)
            if appointment_type is None:
                raise BadRequestException("Invalid appointment type", code="invalid-type")

        appointment = Appointment(
            id=PydanticObjectId(),
            patient=str(patient.id),
            doctor=doctor_id,
            pharmacist=pharmacist,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            duration=request.duration,
            type=appointment_type,
            status=initial_status,
            reason=request.reason,
            symptoms=request.symptoms or "",
            notes=request.notes or "",
            is_active=True,
        )

        key = appointment.current_slot_key
        if key is not None:
            await SlotReservations.reserve(key, str(appointment.id))

        try:
            await appointment.insert()
        except Exception:
            if key is not None:
                await SlotReservations.release(key, str(appointment.id))
            raise

        return appointment

    # ============== Read ==============

    @staticmethod
    async def get_appointment_for_user(appointment_id: str, user: User) -> Appointment:
        appointment = await AppointmentService.get_appointment(appointment_id)
        await AppointmentAccessPolicy.ensure_access(user, appointment)
        return appointment

    @staticmethod
    async def list_appointments(
        user: User,
        status: Optional[str] = None,
        type: Optional[str] = None,
        date: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        include_inactive: bool = False,
    ) -> Tuple[List[Appointment], int]:
        """List the appointments visible to the user, newest first."""
        user_id = str(user.id)
        conditions = []

        if user.is_staff:
            pass
        elif user.role == Role.DOCTOR:
            doctor = await Doctor.find_one(Doctor.user == user_id)
            if doctor is not None:
                conditions.append(Or(Appointment.doctor == str(doctor.id), Appointment.pharmacist == user_id))
            else:
                conditions.append(Appointment.pharmacist == user_id)
        elif user.role == Role.PATIENT:
            patient = await PatientService.get_profile_for_user(user)
            if patient is None:
                return [], 0
            conditions.append(Appointment.patient == str(patient.id))
        elif user.role == Role.PHARMACIST:
            conditions.append(Appointment.pharmacist == user_id)
        else:
            raise ForbiddenException("You do not have permission to list appointments", code="no-access")

        errors = []
        if status:
            parsed_status = parse_enum(AppointmentStatus, status)
            if parsed_status is None:
                errors.append(_field_error("status", "invalid-status", "Invalid appointment status"))
            else:
                conditions.append(Appointment.status == parsed_status)
        if type:
            parsed_type = parse_enum(AppointmentType, type)
            if parsed_type is None:
                errors.append(_field_error("type", "invalid-type", "Invalid appointment type"))
            else:
                conditions.append(Appointment.type == parsed_type)
        if date:
            parsed_date = parse_calendar_date(date)
            if parsed_date is None:
                errors.append(_field_error("date", "invalid-date", "Invalid date"))
            else:
                conditions.append(Appointment.appointment_date == parsed_date)
        _raise_field_errors(errors)

        if not (include_inactive and user.is_staff):
            conditions.append(Appointment.is_active == True)

        query = Appointment.find(*conditions)
        total = await query.count()
        appointments = await query.sort(
            -Appointment.appointment_date, -Appointment.appointment_time
        ).skip((page - 1) * limit).limit(limit).to_list()

        return appointments, total

    # ============== Update ==============

    @staticmethod
    async def _validate_update(appointment: Appointment, scoped: Dict[str, Any]) -> Dict[str, Any]:
        """Turn a role-scoped payload into the field changes to apply."""
        errors: List[Dict[str, str]] = []

        try:
            request = UpdateAppointmentRequest.model_validate(scoped)
        except ValidationError as e:
            for err in e.errors():
                name = str(err["loc"][0]) if err.get("loc") else ""
                field = UpdateAppointmentRequest.model_fields.get(name)
                alias = field.alias if field is not None and field.alias else name
                errors.append(_field_error(alias, "invalid-field", err.get("msg", "Invalid value")))
            _raise_field_errors(errors)

        provided = request.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}

        for name, value in provided.items():
            if value is None and name in IGNORE_NULL_FIELDS:
                continue
            if value is None and name in TEXT_FIELDS:
                changes[name] = ""
                continue
            changes[name] = value

        if "appointment_date" in changes:
            parsed = parse_calendar_date(changes["appointment_date"])
            if parsed is None:
                errors.append(_field_error("appointmentDate", "invalid-date", "Invalid appointment date"))
            changes["appointment_date"] = parsed

        if "appointment_time" in changes:
            normalized = normalize_time(changes["appointment_time"])
            if normalized is None:
                errors.append(_field_error(
                    "appointmentTime", "invalid-time", "Invalid appointment time, expected HH:MM"
                ))
            changes["appointment_time"] = normalized

        if "duration" in changes and not MIN_DURATION <= changes["duration"] <= MAX_DURATION:
            errors.append(_field_error(
                "duration", "invalid-duration",
                f"Duration must be between {MIN_DURATION} and {MAX_DURATION} minutes",
            ))

        if "type" in changes:
            changes["type"] = parse_enum(AppointmentType, changes["type"])
            if changes["type"] is None:
                errors.append(_field_error("type", "invalid-type", "Invalid appointment type"))

        if "status" in changes:
            changes["status"] = parse_enum(AppointmentStatus, changes["status"])
            if changes["status"] is None:
                errors.append(_field_error("status", "invalid-status", "Invalid appointment status"))

        if changes.get("follow_up_date") is not None:
            parsed = parse_calendar_date(changes["follow_up_date"])
            if parsed is None:
                errors.append(_field_error("followUpDate", "invalid-date", "Invalid follow-up date"))
            changes["follow_up_date"] = parsed

        if "reason" in changes:
            changes["reason"] = changes["reason"].strip()
            if not changes["reason"]:
                errors.append(_field_error("reason", "invalid-reason", "Reason cannot be empty"))

        if "pharmacist" in changes and changes["pharmacist"] == "":
            changes["pharmacist"] = None

        _raise_field_errors(errors)

        if "doctor" in changes and changes["doctor"] != appointment.doctor:
            doctor = await AppointmentService.get_doctor(changes["doctor"])
            changes["doctor"] = str(doctor.id)

        return changes

    @staticmethod
    async def update_appointment(appointment_id: str, user: User, payload: Dict[str, Any]) -> Appointment:
        """
        Apply a partial update, keeping only the fields the user's role may write.

        Moving the appointment to another slot reserves the new slot before the
        save and releases the old one after it.
        """
        appointment = await AppointmentService.get_appointment(appointment_id)
        await AppointmentAccessPolicy.ensure_access(user, appointment)

        if not appointment.is_active:
            raise BadRequestException("Cancelled appointments cannot be updated", code="appointment-inactive")

        scoped = scope_update(user.role, payload)
        if len(scoped) < len(payload):
            logger.debug(
                f"Dropped {len(payload) - len(scoped)} field(s) from {user.role.value} update of {appointment.id}"
            )

        changes = await AppointmentService._validate_update(appointment, scoped)
        changes = {name: value for name, value in changes.items() if getattr(appointment, name) != value}
        if not changes:
            return appointment

        old_key = appointment.current_slot_key
        for name, value in changes.items():
            setattr(appointment, name, value)
        new_key = appointment.current_slot_key

        appointment_ref = str(appointment.id)
        reserved = None
        if new_key is not None and new_key != old_key:
            conflict = await AppointmentService.find_conflict(
                appointment.doctor,
                appointment.appointment_date,
                appointment.appointment_time,
                exclude_id=appointment.id,
            )
            if conflict is not None:
                logger.warning(f"Appointment {appointment.id} cannot move to {new_key}: slot taken")
                raise slot_taken()
            await SlotReservations.reserve(new_key, appointment_ref)
            reserved = new_key

        appointment.update_timestamp()
        try:
            await appointment.save()
        except Exception:
            if reserved is not None:
                await SlotReservations.release(reserved, appointment_ref)
            raise

        if old_key is not None and old_key != new_key:
            await SlotReservations.release(old_key, appointment_ref)

        logger.info(f"{user.role.value} user {user.id} updated appointment {appointment.id}: {sorted(changes)}")
        return appointment

    # ============== Cancel ==============

    @staticmethod
    async def cancel_appointment(appointment_id: str, user: User) -> Appointment:
        """Soft-cancel an appointment. The document stays retrievable by id."""
        appointment = await AppointmentService.get_appointment(appointment_id)
        await AppointmentAccessPolicy.ensure_access(user, appointment)

        if not appointment.is_active:
            return appointment

        old_key = appointment.current_slot_key
        appointment.status = AppointmentStatus.CANCELLED
        appointment.is_active = False
        appointment.update_timestamp()
        await appointment.save()

        if old_key is not None:
            await SlotReservations.release(old_key, str(appointment.id))

        logger.info(f"{user.role.value} user {user.id} cancelled appointment {appointment.id}")
        return appointment

    # ============== Projection ==============

    @staticmethod
    async def to_responses(appointments: List[Appointment], viewer: User) -> List[AppointmentResponse]:
        """Project appointments with their patient and doctor details, fetched in batch."""
        patient_ids = {_object_id(a.patient) for a in appointments} - {None}
        doctor_ids = {_object_id(a.doctor) for a in appointments} - {None}

        patients = {}
        if patient_ids:
            patients = {str(p.id): p for p in await Patient.find(In(Patient.id, list(patient_ids))).to_list()}

        doctors = {}
        if doctor_ids:
            doctors = {str(d.id): d for d in await Doctor.find(In(Doctor.id, list(doctor_ids))).to_list()}

        user_ids = {_object_id(d.user) for d in doctors.values()} - {None}
        users = {}
        if user_ids:
            users = {str(u.id): u for u in await User.find(In(User.id, list(user_ids))).to_list()}

        show_pharmacist = can_see_pharmacist(viewer.role)
        return [
            AppointmentService._to_response(a, patients, doctors, users, show_pharmacist)
            for a in appointments
        ]

    @staticmethod
    async def to_response(appointment: Appointment, viewer: User) -> AppointmentResponse:
        responses = await AppointmentService.to_responses([appointment], viewer)
        return responses[0]

    @staticmethod
    def _to_response(
        appointment: Appointment,
        patients: Dict[str, Patient],
        doctors: Dict[str, Doctor],
        users: Dict[str, User],
        show_pharmacist: bool,
    ) -> AppointmentResponse:
        patient_summary = None
        patient = patients.get(appointment.patient)
        if patient is not None:
            patient_summary = PatientSummary(
                id=str(patient.id),
                first_name=patient.first_name,
                last_name=patient.last_name,
                email=patient.email,
                phone=patient.phone,
            )

        doctor_summary = None
        doctor = doctors.get(appointment.doctor)
        if doctor is not None:
            doctor_user = users.get(doctor.user)
            profile = doctor.profile
            doctor_summary = DoctorSummary(
                id=str(doctor.id),
                name=doctor_user.name if doctor_user else "",
                email=str(doctor_user.email) if doctor_user else None,
                specialization=profile.specialization if profile else "",
                department=profile.department if profile else "",
                consultation_fee=profile.consultation_fee if profile else 0,
            )

        return AppointmentResponse(
            id=str(appointment.id),
            patient=patient_summary,
            doctor=doctor_summary,
            pharmacist=appointment.pharmacist if show_pharmacist else None,
            appointment_date=appointment.appointment_date.date().isoformat(),
            appointment_time=appointment.appointment_time,
            duration=appointment.duration,
            type=appointment.type,
            status=appointment.status,
            reason=appointment.reason,
            symptoms=appointment.symptoms,
            diagnosis=appointment.diagnosis,
            prescription=appointment.prescription,
            notes=appointment.notes,
            vital_signs=appointment.vital_signs,
            follow_up_date=appointment.follow_up_date,
            is_active=appointment.is_active,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )
