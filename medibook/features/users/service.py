# Users Feature - Service

import re
from typing import Optional, List, Tuple, Dict, Any
from beanie import PydanticObjectId
from beanie.operators import Or, RegEx
from bson import ObjectId
from medibook.features.auth.models import User, Role, UserStatus
from medibook.features.users.schemas import (
    CreateUserRequest,
    UpdateUserRequest,
    PatchUserRequest,
    UserAction,
    UserResponse,
    UserDetailResponse,
)
from medibook.features.users.profiles import RoleProfileService, ProfileSwap
from medibook.core.security import get_password_hash
from medibook.core.logging import logger
from medibook.shared.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)


# Changes an admin may not make to their own account
LOCKOUT_STATUSES = frozenset({UserStatus.INACTIVE, UserStatus.SUSPENDED})

ACTION_CHANGES: Dict[UserAction, Dict[str, Any]] = {
    UserAction.SUSPEND: {"status": UserStatus.SUSPENDED},
    UserAction.ACTIVATE: {"status": UserStatus.ACTIVE},
    UserAction.DEACTIVATE: {"status": UserStatus.INACTIVE},
    UserAction.VERIFY_EMAIL: {"is_email_verified": True},
    UserAction.UNVERIFY_EMAIL: {"is_email_verified": False},
}


class UserService:
    """Service class for admin user management."""

    @staticmethod
    async def get_user(user_id: str) -> User:
        if not ObjectId.is_valid(user_id):
            raise BadRequestException("Invalid user id", code="invalid-id")

        user = await User.get(PydanticObjectId(user_id))
        if not user:
            raise NotFoundException("User not found", code="user-missing")
        return user

    @staticmethod
    async def list_users(
        role: Optional[Role] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[User], int]:
        conditions = []
        if role:
            conditions.append(User.role == role)
        if status:
            conditions.append(User.status == status)
        if search and search.strip():
            pattern = re.escape(search.strip())
            conditions.append(Or(
                RegEx(User.name, pattern, options="i"),
                RegEx(User.email, pattern, options="i"),
            ))

        query = User.find(*conditions)
        total = await query.count()
        users = await query.sort(-User.created_at).skip((page - 1) * limit).limit(limit).to_list()
        return users, total

    @staticmethod
    async def create_user(admin: User, request: CreateUserRequest) -> User:
        """Create a user and the profile stub for their role."""
        email = str(request.email).lower()
        if await User.find_one(User.email == email):
            raise ConflictException("Email already registered", code="email-taken")

        user = User(
            email=email,
            name=request.name.strip(),
            phone=request.phone,
            image=request.image,
            password_hash=get_password_hash(request.password),
            role=request.role,
            status=request.status,
            is_email_verified=request.is_email_verified,
        )
        await user.insert()

        try:
            await RoleProfileService.sync_role_profile(str(user.id), None, user.role)
        except Exception:
            await user.delete()
            raise

        logger.info(f"Admin {admin.id} created {user.role.value} user {user.id}")
        return user

    @staticmethod
    def _check_self_lockout(admin: User, target: User, changes: Dict[str, Any]) -> None:
        if str(admin.id) != str(target.id):
            return
        if "role" in changes and changes["role"] != Role.ADMIN:
            raise ForbiddenException("You cannot remove your own admin role", code="self-demotion")
        if changes.get("status") in LOCKOUT_STATUSES:
            raise ForbiddenException("You cannot suspend or deactivate your own account", code="self-lockout")

    @staticmethod
    async def update_user(admin: User, user_id: str, request: UpdateUserRequest) -> User:
        """
        Update a user. A role change moves their profile to the new role.

        If saving the user fails after the profile was moved, the profile
        change is reverted.
        """
        user = await UserService.get_user(user_id)

        changes = {
            name: value
            for name, value in request.model_dump(exclude_unset=True, exclude={"action"}).items()
            if value is not None
        }
        if isinstance(request, PatchUserRequest) and request.action is not None:
            changes.update(ACTION_CHANGES[request.action])

        UserService._check_self_lockout(admin, user, changes)

        previous_role = user.role
        for name, value in changes.items():
            setattr(user, name, value)

        role_changed = user.role != previous_role
        swap = ProfileSwap()
        if role_changed:
            swap = await RoleProfileService.sync_role_profile(str(user.id), previous_role, user.role)

        user.update_timestamp()
        try:
            await user.save()
        except Exception:
            if role_changed:
                logger.error(f"Saving user {user.id} failed, reverting profile change")
                await RoleProfileService.revert_role_profile(str(user.id), user.role, swap)
            raise

        if role_changed:
            logger.info(f"Admin {admin.id} changed role of user {user.id}: {previous_role.value} -> {user.role.value}")
        else:
            logger.info(f"Admin {admin.id} updated user {user.id}")
        return user

    @staticmethod
    async def deactivate_user(admin: User, user_id: str) -> User:
        """Soft delete: users are deactivated, never removed."""
        user = await UserService.get_user(user_id)
        if str(admin.id) == str(user.id):
            raise ForbiddenException("You cannot delete your own account", code="self-lockout")

        user.status = UserStatus.INACTIVE
        user.update_timestamp()
        await user.save()

        logger.info(f"Admin {admin.id} deactivated user {user.id}")
        return user

    @staticmethod
    def user_to_response(user: User) -> UserResponse:
        return UserResponse(
            id=str(user.id),
            email=str(user.email),
            name=user.name,
            phone=user.phone,
            image=user.image,
            role=user.role,
            status=user.status,
            is_email_verified=user.is_email_verified,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    @staticmethod
    async def user_to_detail(user: User) -> UserDetailResponse:
        profile = await RoleProfileService.get_profile(str(user.id), user.role)
        return UserDetailResponse(
            **UserService.user_to_response(user).model_dump(),
            profile=profile.model_dump(mode="json", exclude={"revision_id"}) if profile else None,
        )
