# Users Feature - Schemas

from enum import Enum
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import EmailStr, Field
from medibook.features.auth.models import Role, UserStatus
from medibook.shared.schemas import CamelModel, Pagination


class CreateUserRequest(CamelModel):
    """Request schema for an admin creating a user."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None
    image: Optional[str] = None
    role: Role = Role.PATIENT
    status: UserStatus = UserStatus.ACTIVE
    is_email_verified: bool = False


class UpdateUserRequest(CamelModel):
    """Request schema for an admin updating a user."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = None
    image: Optional[str] = None
    role: Optional[Role] = None
    status: Optional[UserStatus] = None
    is_email_verified: Optional[bool] = None


class UserAction(str, Enum):
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    VERIFY_EMAIL = "verify-email"
    UNVERIFY_EMAIL = "unverify-email"


class PatchUserRequest(UpdateUserRequest):
    """Update plus an optional shortcut action."""
    action: Optional[UserAction] = None


class UserResponse(CamelModel):
    """User returned to admins. Never includes the password hash."""
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    image: Optional[str] = None
    role: Role
    status: UserStatus
    is_email_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserDetailResponse(UserResponse):
    """User together with their role profile, if the role has one."""
    profile: Optional[Dict[str, Any]] = None


class UserListResponse(CamelModel):
    users: List[UserResponse]
    pagination: Pagination
