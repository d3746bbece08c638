from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from beanie import PydanticObjectId
from bson import ObjectId
from medibook.features.auth.models import User, Role
from medibook.core.security import decode_token
from medibook.core.logging import logger
from medibook.shared.exceptions import CredentialsException, ForbiddenException


# HTTP Bearer security scheme; missing headers are reported as 401 below
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> User:
    """
    Dependency to get current authenticated user.

    Args:
        credentials: HTTP Bearer credentials

    Returns:
        User: Current authenticated user

    Raises:
        CredentialsException: If credentials are missing or invalid
    """
    if credentials is None:
        raise CredentialsException("Not authenticated")

    # Decode token
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise CredentialsException("Invalid authentication credentials")

    # User id is stored in "sub"
    user_id: Optional[str] = payload.get("sub")
    if user_id is None or not ObjectId.is_valid(user_id):
        raise CredentialsException("Invalid authentication credentials")

    user = await User.get(PydanticObjectId(user_id))
    if user is None:
        raise CredentialsException("User not found")

    if not user.is_active:
        logger.warning(f"Rejected request from {user.status.value} user {user_id}")
        raise CredentialsException("Inactive user")

    return user


def require_roles(*roles: Role):
    """
    Build a dependency that only lets the given roles through.

    Example:
        current_user: User = Depends(require_roles(Role.ADMIN))
    """
    allowed = frozenset(roles)

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenException(
                f"This action requires one of the roles: {', '.join(sorted(r.value for r in allowed))}",
                code="role-required",
            )
        return current_user

    return dependency


get_current_admin = require_roles(Role.ADMIN)
get_current_staff = require_roles(Role.ADMIN, Role.RECEPTIONIST)
