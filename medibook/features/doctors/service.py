# Doctor Profiles Feature - Service

import re
from typing import Optional, List, Tuple
from beanie import PydanticObjectId
from beanie.operators import In
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from medibook.features.auth.models import User, Role
from medibook.features.doctors.models import Doctor, DoctorProfile, Availability
from medibook.features.doctors.schemas import CreateDoctorRequest, DoctorResponse, AvailabilitySchema
from medibook.core.logging import logger
from medibook.shared.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    duplicate_key_conflict,
)


def _exact_ci(value: str) -> dict:
    return {"$regex": f"^{re.escape(value.strip())}$", "$options": "i"}


class DoctorService:
    """Service class for doctor profile operations."""

    @staticmethod
    async def create_profile(admin: User, request: CreateDoctorRequest) -> Doctor:
        """
        Complete the doctor profile of a user.

        Fills the stub created when the user became a doctor, or creates the
        profile if there is none yet.
        """
        if not ObjectId.is_valid(request.user_id):
            raise BadRequestException("Invalid user id", code="invalid-id")
        user = await User.get(PydanticObjectId(request.user_id))
        if not user:
            raise NotFoundException("User not found", code="user-missing")
        if user.role != Role.DOCTOR:
            raise BadRequestException("User does not have the DOCTOR role", code="role-mismatch")

        doctor = await Doctor.find_one(Doctor.user == request.user_id)
        if doctor and not doctor.is_stub:
            raise ConflictException("Doctor profile already exists for this user", code="profile-exists")

        if await Doctor.find_one({"profile.license_number": request.license_number}):
            raise ConflictException("License number is already registered", code="license-taken")

        availability = Availability(**request.availability.model_dump()) if request.availability else Availability()
        profile = DoctorProfile(
            **request.model_dump(exclude={"user_id", "availability"}),
            availability=availability,
        )

        try:
            if doctor:
                doctor.profile = profile
                doctor.update_timestamp()
                await doctor.save()
            else:
                doctor = Doctor(user=request.user_id, profile=profile)
                await doctor.insert()
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate doctor profile for user {request.user_id}: {e.details}")
            raise duplicate_key_conflict(e, "Doctor profile conflicts with an existing one")

        logger.info(f"Admin {admin.id} completed doctor profile {doctor.id} for user {user.id}")
        return doctor

    @staticmethod
    async def list_doctors(
        specialization: Optional[str] = None,
        department: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Doctor], int]:
        query = Doctor.find(Doctor.is_active == True)
        if specialization:
            query = query.find({"profile.specialization": _exact_ci(specialization)})
        if department:
            query = query.find({"profile.department": _exact_ci(department)})

        total = await query.count()
        doctors = await query.sort(-Doctor.created_at).skip((page - 1) * limit).limit(limit).to_list()
        return doctors, total

    @staticmethod
    async def get_doctor(doctor_id: str) -> Doctor:
        if not ObjectId.is_valid(doctor_id):
            raise BadRequestException("Invalid doctor id", code="invalid-id")
        doctor = await Doctor.get(PydanticObjectId(doctor_id))
        if not doctor:
            raise NotFoundException("Doctor not found", code="doctor-missing")
        return doctor

    @staticmethod
    async def to_responses(doctors: List[Doctor]) -> List[DoctorResponse]:
        user_ids = [PydanticObjectId(d.user) for d in doctors if ObjectId.is_valid(d.user)]
        users = {}
        if user_ids:
            users = {str(u.id): u for u in await User.find(In(User.id, user_ids)).to_list()}
        return [DoctorService.doctor_to_response(d, users.get(d.user)) for d in doctors]

    @staticmethod
    def doctor_to_response(doctor: Doctor, user: Optional[User]) -> DoctorResponse:
        profile_fields = {}
        if doctor.profile:
            profile_fields = doctor.profile.model_dump(exclude={"availability"})
            profile_fields["availability"] = AvailabilitySchema(**doctor.profile.availability.model_dump())

        return DoctorResponse(
            id=str(doctor.id),
            user=doctor.user,
            name=user.name if user else "",
            email=str(user.email) if user else None,
            is_stub=doctor.is_stub,
            is_active=doctor.is_active,
            created_at=doctor.created_at,
            updated_at=doctor.updated_at,
            **profile_fields,
        )
