# Patient Management Feature - Router

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from medibook.features.patients.models import Patient
from medibook.features.patients.schemas import (
    CreatePatientRequest,
    UpdatePatientRequest,
    PatientResponse,
    PatientListResponse,
)
from medibook.features.patients.service import PatientService
from medibook.features.patients.dependencies import get_current_patient
from medibook.features.auth.dependencies import get_current_user, get_current_staff, require_roles
from medibook.features.auth.models import User, Role
from medibook.shared.schemas import DataResponse, Pagination


router = APIRouter(prefix="/patients", tags=["Patients"])


@router.post("", response_model=DataResponse[PatientResponse], status_code=status.HTTP_201_CREATED)
async def create_patient(
    request: CreatePatientRequest,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.ADMIN, Role.RECEPTIONIST)),
):
    """
    Create a patient profile.

    - Patients create their own profile (onboarding)
    - Admins and receptionists register patients on their behalf

    Email and NIC must be unique across patients.
    """
    patient = await PatientService.create_patient(current_user, request)
    return DataResponse(
        message="Patient created successfully",
        data=PatientService.patient_to_response(patient),
    )


@router.get("/me", response_model=DataResponse[PatientResponse])
async def get_my_profile(current_patient: Patient = Depends(get_current_patient)):
    """Get the calling patient's own profile."""
    return DataResponse(data=PatientService.patient_to_response(current_patient))


@router.get("", response_model=DataResponse[PatientListResponse])
async def list_patients(
    search: Optional[str] = None,
    include_inactive: bool = Query(False, alias="includeInactive"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_roles(Role.ADMIN, Role.RECEPTIONIST, Role.DOCTOR)),
):
    """
    List patients.

    - **search**: matches first name, last name, email or NIC
    - **includeInactive**: Include deactivated patients (default: false)
    """
    patients, total = await PatientService.get_patients(search, include_inactive, page, limit)
    return DataResponse(
        data=PatientListResponse(
            patients=[PatientService.patient_to_response(p) for p in patients],
            pagination=Pagination.build(total, page, limit),
        )
    )


@router.get("/{patient_id}", response_model=DataResponse[PatientResponse])
async def get_patient(
    patient_id: str,
    current_user: User = Depends(get_current_user),
):
    """Get a patient. Staff and doctors see any patient, patients only themselves."""
    patient = await PatientService.get_patient_by_id(patient_id)
    PatientService.ensure_can_view(current_user, patient)
    return DataResponse(data=PatientService.patient_to_response(patient))


@router.put("/{patient_id}", response_model=DataResponse[PatientResponse])
async def update_patient(
    patient_id: str,
    request: UpdatePatientRequest,
    current_user: User = Depends(get_current_user),
):
    """Update a patient's information. Staff or the patient themselves."""
    patient = await PatientService.update_patient(current_user, patient_id, request)
    return DataResponse(
        message="Patient updated successfully",
        data=PatientService.patient_to_response(patient),
    )


@router.delete("/{patient_id}", response_model=DataResponse[PatientResponse])
async def delete_patient(
    patient_id: str,
    current_user: User = Depends(get_current_staff),
):
    """
    Deactivate a patient.

    The record is kept and can still be fetched by id; it no longer appears
    in default listings.
    """
    patient = await PatientService.deactivate_patient(current_user, patient_id)
    return DataResponse(
        message="Patient deactivated successfully",
        data=PatientService.patient_to_response(patient),
    )
