# Users Feature - Role Profiles

from typing import Dict, NamedTuple, Optional, Type
from beanie import Document
from medibook.features.auth.models import Role
from medibook.features.doctors.models import Doctor
from medibook.features.patients.models import Patient
from medibook.features.receptionists.models import Receptionist
from medibook.core.logging import logger


# Roles that own a profile document. Other roles have no profile.
PROFILE_MODELS: Dict[Role, Type[Document]] = {
    Role.DOCTOR: Doctor,
    Role.PATIENT: Patient,
    Role.RECEPTIONIST: Receptionist,
}


def profile_model_for(role: Optional[Role]) -> Optional[Type[Document]]:
    if role is None:
        return None
    return PROFILE_MODELS.get(role)


class ProfileSwap(NamedTuple):
    """What a profile sync changed: the profile it removed and the stub it created."""
    removed: Optional[Document] = None
    created: Optional[Document] = None


class RoleProfileService:
    """
    Keeps exactly one role profile per user, matching the user's role.

    A role change deletes the old role's profile and then creates a stub
    for the new role. If the stub cannot be created the deleted profile is
    put back, so a failed swap leaves the user as it was.
    """

    @staticmethod
    async def get_profile(user_id: str, role: Optional[Role]) -> Optional[Document]:
        model = profile_model_for(role)
        if model is None:
            return None
        return await model.find_one({"user": user_id})

    @staticmethod
    async def sync_role_profile(
        user_id: str, previous_role: Optional[Role], new_role: Role
    ) -> ProfileSwap:
        """
        Move the user's profile from ``previous_role`` to ``new_role``.

        Args:
            user_id: The user whose profile changes
            previous_role: Role before the change, None for a new user
            new_role: Role after the change

        Returns:
            ProfileSwap with the removed profile and the created stub, if any
        """
        if previous_role == new_role:
            return ProfileSwap()

        removed: Optional[Document] = None
        old_model = profile_model_for(previous_role)
        if old_model is not None:
            removed = await old_model.find_one({"user": user_id})
            if removed is not None:
                await removed.delete()
                logger.info(f"Removed {previous_role.value} profile {removed.id} of user {user_id}")

        new_model = profile_model_for(new_role)
        if new_model is None:
            return ProfileSwap(removed=removed)

        created: Optional[Document] = None
        try:
            if await new_model.find_one({"user": user_id}) is None:
                created = new_model(user=user_id)
                await created.insert()
                logger.info(f"Created {new_role.value} profile stub {created.id} for user {user_id}")
        except Exception:
            logger.exception(f"Could not create {new_role.value} profile for user {user_id}")
            if removed is not None:
                await removed.insert()
                logger.info(f"Restored {previous_role.value} profile {removed.id} of user {user_id}")
            raise

        return ProfileSwap(removed=removed, created=created)

    @staticmethod
    async def revert_role_profile(user_id: str, new_role: Role, swap: ProfileSwap) -> None:
        """Undo ``sync_role_profile`` after the user change itself failed to save."""
        if swap.created is not None:
            await swap.created.delete()
        if swap.removed is not None:
            await swap.removed.insert()
        logger.info(f"Reverted {new_role.value} profile change of user {user_id}")
