# Patient Management Feature - Dependencies

from fastapi import Depends
from medibook.features.auth.dependencies import require_roles
from medibook.features.auth.models import User, Role
from medibook.features.patients.models import Patient
from medibook.features.patients.service import PatientService
from medibook.core.logging import logger
from medibook.shared.exceptions import NotFoundException


get_current_patient_user = require_roles(Role.PATIENT)


async def get_current_patient(
    current_user: User = Depends(get_current_patient_user)
) -> Patient:
    """
    Dependency to get the calling patient's own profile.

    Args:
        current_user: Authenticated user with the PATIENT role

    Returns:
        Patient: The user's active patient profile

    Raises:
        NotFoundException: If the user has not completed onboarding
    """
    patient = await PatientService.get_profile_for_user(current_user)
    if patient is None:
        logger.warning(f"Patient user {current_user.id} has no patient profile")
        raise NotFoundException(
            "Patient profile not found. Please complete onboarding first.",
            code="profile-missing",
        )
    return patient
