# Users Feature - Router (admin only)

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from medibook.features.auth.dependencies import get_current_admin
from medibook.features.auth.models import User, Role, UserStatus
from medibook.features.users.schemas import (
    CreateUserRequest,
    UpdateUserRequest,
    PatchUserRequest,
    UserResponse,
    UserDetailResponse,
    UserListResponse,
)
from medibook.features.users.service import UserService
from medibook.shared.schemas import DataResponse, Pagination


router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


@router.get("", response_model=DataResponse[UserListResponse])
async def list_users(
    role: Optional[Role] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_admin),
):
    """
    List users.

    - **role** / **status**: exact filters
    - **search**: matches name or email, case-insensitive
    """
    users, total = await UserService.list_users(role, status, search, page, limit)
    return DataResponse(
        data=UserListResponse(
            users=[UserService.user_to_response(u) for u in users],
            pagination=Pagination.build(total, page, limit),
        )
    )


@router.post("", response_model=DataResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    current_user: User = Depends(get_current_admin),
):
    """Create a user. A profile stub is created for doctor, patient and receptionist roles."""
    user = await UserService.create_user(current_user, request)
    return DataResponse(message="User created successfully", data=UserService.user_to_response(user))


@router.get("/{user_id}", response_model=DataResponse[UserDetailResponse])
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_admin),
):
    """Get a user together with their role profile."""
    user = await UserService.get_user(user_id)
    return DataResponse(data=await UserService.user_to_detail(user))


@router.put("/{user_id}", response_model=DataResponse[UserResponse])
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    current_user: User = Depends(get_current_admin),
):
    """Update a user. Changing the role replaces their role profile."""
    user = await UserService.update_user(current_user, user_id, request)
    return DataResponse(message="User updated successfully", data=UserService.user_to_response(user))


@router.patch("/{user_id}", response_model=DataResponse[UserResponse])
async def patch_user(
    user_id: str,
    request: PatchUserRequest,
    current_user: User = Depends(get_current_admin),
):
    """
    Partially update a user, optionally with an action:
    suspend, activate, deactivate, verify-email or unverify-email.
    """
    user = await UserService.update_user(current_user, user_id, request)
    return DataResponse(message="User updated successfully", data=UserService.user_to_response(user))


@router.delete("/{user_id}", response_model=DataResponse[UserResponse])
async def delete_user(
    user_id: str,
    current_user: User = Depends(get_current_admin),
):
    """Deactivate a user. Users are never removed."""
    user = await UserService.deactivate_user(current_user, user_id)
    return DataResponse(message="User deactivated successfully", data=UserService.user_to_response(user))
