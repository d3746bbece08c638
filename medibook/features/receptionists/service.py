# Receptionists Feature - Service

from typing import Optional, List, Tuple
from beanie import PydanticObjectId
from beanie.operators import In
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from medibook.features.auth.models import User, Role
from medibook.features.receptionists.models import Receptionist, EMPLOYEE_ID_PATTERN
from medibook.features.receptionists.schemas import CreateReceptionistRequest, ReceptionistResponse
from medibook.core.logging import logger
from medibook.shared.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    duplicate_key_conflict,
)


class ReceptionistService:
    """Service class for receptionist profile operations."""

    @staticmethod
    async def create_profile(admin: User, request: CreateReceptionistRequest) -> Receptionist:
        employee_id = request.employee_id.strip().upper()
        if not EMPLOYEE_ID_PATTERN.match(employee_id):
            raise BadRequestException(
                "Employee ID must follow the format REC-YYYY-NNNN",
                code="invalid-employee-id",
            )

        if not ObjectId.is_valid(request.user_id):
            raise BadRequestException("Invalid user id", code="invalid-id")
        user = await User.get(PydanticObjectId(request.user_id))
        if not user:
            raise NotFoundException("User not found", code="user-missing")
        if user.role != Role.RECEPTIONIST:
            raise BadRequestException("User does not have the RECEPTIONIST role", code="role-mismatch")

        receptionist = await Receptionist.find_one(Receptionist.user == request.user_id)
        if receptionist and receptionist.employee_id:
            raise ConflictException("Receptionist profile already exists for this user", code="profile-exists")

        if await Receptionist.find_one(Receptionist.employee_id == employee_id):
            raise ConflictException("Employee ID is already in use", code="employee-id-taken")

        fields = request.model_dump(exclude={"user_id", "employee_id"})
        try:
            if receptionist:
                for name, value in fields.items():
                    setattr(receptionist, name, value)
                receptionist.employee_id = employee_id
                receptionist.update_timestamp()
                await receptionist.save()
            else:
                receptionist = Receptionist(user=request.user_id, employee_id=employee_id, **fields)
                await receptionist.insert()
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate receptionist profile for user {request.user_id}: {e.details}")
            raise duplicate_key_conflict(e, "Receptionist profile conflicts with an existing one")

        logger.info(f"Admin {admin.id} completed receptionist profile {receptionist.id} ({employee_id})")
        return receptionist

    @staticmethod
    async def list_receptionists(page: int = 1, limit: int = 10) -> Tuple[List[Receptionist], int]:
        query = Receptionist.find_all()
        total = await query.count()
        receptionists = await query.sort(-Receptionist.created_at).skip((page - 1) * limit).limit(limit).to_list()
        return receptionists, total

    @staticmethod
    async def get_receptionist(receptionist_id: str) -> Receptionist:
        if not ObjectId.is_valid(receptionist_id):
            raise BadRequestException("Invalid receptionist id", code="invalid-id")
        receptionist = await Receptionist.get(PydanticObjectId(receptionist_id))
        if not receptionist:
            raise NotFoundException("Receptionist not found", code="receptionist-missing")
        return receptionist

    @staticmethod
    async def to_responses(receptionists: List[Receptionist]) -> List[ReceptionistResponse]:
        user_ids = [PydanticObjectId(r.user) for r in receptionists if ObjectId.is_valid(r.user)]
        users = {}
        if user_ids:
            users = {str(u.id): u for u in await User.find(In(User.id, user_ids)).to_list()}
        return [ReceptionistService.receptionist_to_response(r, users.get(r.user)) for r in receptionists]

    @staticmethod
    def receptionist_to_response(receptionist: Receptionist, user: Optional[User]) -> ReceptionistResponse:
        return ReceptionistResponse(
            id=str(receptionist.id),
            user=receptionist.user,
            name=user.name if user else "",
            email=str(user.email) if user else None,
            employee_id=receptionist.employee_id,
            shift=receptionist.shift,
            employment_type=receptionist.employment_type,
            employment_status=receptionist.employment_status,
            department=receptionist.department,
            hire_date=receptionist.hire_date,
            languages=receptionist.languages,
            notes=receptionist.notes,
            created_at=receptionist.created_at,
            updated_at=receptionist.updated_at,
        )
