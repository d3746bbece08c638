# Patient Management Feature - Service

import re
from typing import Optional, List, Tuple, Dict, Any
from datetime import date, datetime
from beanie import PydanticObjectId
from beanie.operators import Or, RegEx
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from medibook.features.auth.models import User, Role
from medibook.features.patients.models import Patient, Insurance, EmergencyContact
from medibook.features.patients.schemas import (
    CreatePatientRequest,
    UpdatePatientRequest,
    PatientResponse,
    InsuranceSchema,
    EmergencyContactSchema,
)
from medibook.features.appointments.access import resolve_patient_owner
from medibook.core.logging import logger
from medibook.shared.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    duplicate_key_conflict,
)


def _midnight(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime(value.year, value.month, value.day)


def _to_document_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert validated request fields to their stored form."""
    converted = dict(fields)

    if converted.get("email"):
        converted["email"] = str(converted["email"]).lower()
    if converted.get("nic"):
        converted["nic"] = converted["nic"].strip().upper()
    if "date_of_birth" in converted:
        converted["date_of_birth"] = _midnight(converted["date_of_birth"])
    if converted.get("insurance"):
        insurance = converted["insurance"]
        converted["insurance"] = Insurance(
            provider=insurance["provider"],
            policy_number=insurance["policy_number"],
            valid_from=_midnight(insurance.get("valid_from")),
            valid_until=_midnight(insurance.get("valid_until")),
        )
    if converted.get("emergency_contact"):
        converted["emergency_contact"] = EmergencyContact(**converted["emergency_contact"])

    return converted


class PatientService:
    """Service class for patient management operations."""

    @staticmethod
    async def _check_unique(email: Optional[str], nic: Optional[str], exclude_id: Optional[PydanticObjectId] = None):
        """Raise ConflictException if another patient already uses the email or NIC."""
        if email:
            existing = await Patient.find_one(Patient.email == email)
            if existing and existing.id != exclude_id:
                raise ConflictException("A patient with this email already exists", code="email-taken")
        if nic:
            existing = await Patient.find_one(Patient.nic == nic)
            if existing and existing.id != exclude_id:
                raise ConflictException("A patient with this NIC already exists", code="nic-taken")

    @staticmethod
    async def get_profile_for_user(user: User) -> Optional[Patient]:
        """Active patient profile owned by the user, by ``user`` or legacy ``created_by``."""
        user_id = str(user.id)
        patient = await Patient.find_one(Patient.user == user_id, Patient.is_active == True)
        if patient is None:
            patient = await Patient.find_one(Patient.created_by == user_id, Patient.is_active == True)
        return patient

    @staticmethod
    async def create_patient(user: User, request: CreatePatientRequest) -> Patient:
        """
        Create a patient profile.

        A PATIENT creates their own profile, filling the stub made when the
        account got the PATIENT role. Staff register patients on their behalf.
        """
        fields = _to_document_fields(request.model_dump(exclude_none=True))
        user_id = str(user.id)

        stub = None
        if user.role == Role.PATIENT:
            stub = await Patient.find_one(Patient.user == user_id)
            if stub and stub.first_name:
                raise ConflictException("You already have a patient profile", code="profile-exists")
            fields["user"] = user_id
            fields["created_by"] = user_id
        elif user.is_staff:
            fields["created_by"] = user_id
        else:
            raise ForbiddenException("You do not have permission to create patients", code="role-required")

        await PatientService._check_unique(fields.get("email"), fields.get("nic"), stub.id if stub else None)

        try:
            if stub:
                for name, value in fields.items():
                    setattr(stub, name, value)
                stub.is_active = True
                stub.update_timestamp()
                await stub.save()
                patient = stub
            else:
                patient = Patient(**fields)
                await patient.insert()
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate patient for user {user_id}: {e.details}")
            raise duplicate_key_conflict(e, "A patient with this email or NIC already exists")

        logger.info(f"{user.role.value} user {user_id} created patient {patient.id}")
        return patient

    @staticmethod
    async def get_patients(
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Patient], int]:
        """Get patients, optionally matching a search on name, email or NIC."""
        conditions = []
        if not include_inactive:
            conditions.append(Patient.is_active == True)
        if search and search.strip():
            pattern = re.escape(search.strip())
            conditions.append(Or(
                RegEx(Patient.first_name, pattern, options="i"),
                RegEx(Patient.last_name, pattern, options="i"),
                RegEx(Patient.email, pattern, options="i"),
                RegEx(Patient.nic, pattern, options="i"),
            ))

        query = Patient.find(*conditions)
        total = await query.count()
        patients = await query.sort(-Patient.created_at).skip((page - 1) * limit).limit(limit).to_list()
        return patients, total

    @staticmethod
    async def get_patient_by_id(patient_id: str) -> Patient:
        """Get a patient by their MongoDB _id."""
        if not ObjectId.is_valid(patient_id):
            raise BadRequestException("Invalid patient id", code="invalid-id")

        patient = await Patient.get(PydanticObjectId(patient_id))
        if not patient:
            raise NotFoundException("Patient not found", code="patient-missing")
        return patient

    @staticmethod
    def ensure_can_view(user: User, patient: Patient) -> None:
        if user.is_staff or user.role == Role.DOCTOR:
            return
        if user.role == Role.PATIENT and resolve_patient_owner(patient, user):
            return
        raise ForbiddenException("You do not have permission to view this patient", code="no-access")

    @staticmethod
    def ensure_can_edit(user: User, patient: Patient) -> None:
        if user.is_staff:
            return
        if user.role == Role.PATIENT and resolve_patient_owner(patient, user):
            return
        raise ForbiddenException("You do not have permission to update this patient", code="no-access")

    @staticmethod
    async def update_patient(user: User, patient_id: str, request: UpdatePatientRequest) -> Patient:
        """Update patient information."""
        patient = await PatientService.get_patient_by_id(patient_id)
        PatientService.ensure_can_edit(user, patient)

        update_dict = _to_document_fields(request.model_dump(exclude_unset=True, exclude_none=True))
        await PatientService._check_unique(update_dict.get("email"), update_dict.get("nic"), patient.id)

        for field, value in update_dict.items():
            setattr(patient, field, value)

        patient.update_timestamp()
        try:
            await patient.save()
        except DuplicateKeyError as e:
            raise duplicate_key_conflict(e, "A patient with this email or NIC already exists")

        logger.info(f"{user.role.value} user {user.id} updated patient {patient.id}")
        return patient

    @staticmethod
    async def deactivate_patient(user: User, patient_id: str) -> Patient:
        """Soft delete a patient. Their record and appointments are kept."""
        patient = await PatientService.get_patient_by_id(patient_id)

        patient.is_active = False
        patient.update_timestamp()
        await patient.save()

        logger.info(f"{user.role.value} user {user.id} deactivated patient {patient.id}")
        return patient

    @staticmethod
    def patient_to_response(patient: Patient) -> PatientResponse:
        """Convert Patient model to response schema."""
        insurance = None
        if patient.insurance:
            insurance = InsuranceSchema(
                provider=patient.insurance.provider,
                policy_number=patient.insurance.policy_number,
                valid_from=patient.insurance.valid_from.date() if patient.insurance.valid_from else None,
                valid_until=patient.insurance.valid_until.date() if patient.insurance.valid_until else None,
            )

        return PatientResponse(
            id=str(patient.id),
            user=patient.user,
            created_by=patient.created_by,
            first_name=patient.first_name,
            last_name=patient.last_name,
            email=patient.email,
            nic=patient.nic,
            phone=patient.phone,
            date_of_birth=patient.date_of_birth.date() if patient.date_of_birth else None,
            gender=patient.gender,
            address=patient.address,
            emergency_contact=(
                EmergencyContactSchema(**patient.emergency_contact.model_dump())
                if patient.emergency_contact else None
            ),
            blood_type=patient.blood_type,
            allergies=patient.allergies,
            medications=patient.medications,
            medical_history=patient.medical_history,
            insurance=insurance,
            is_active=patient.is_active,
            created_at=patient.created_at,
            updated_at=patient.updated_at,
        )
