# Doctor Profiles Feature - Router

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from medibook.features.auth.dependencies import get_current_user, get_current_admin
from medibook.features.auth.models import User
from medibook.features.doctors.schemas import CreateDoctorRequest, DoctorResponse, DoctorListResponse
from medibook.features.doctors.service import DoctorService
from medibook.shared.schemas import DataResponse, Pagination


router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.post("", response_model=DataResponse[DoctorResponse], status_code=status.HTTP_201_CREATED)
async def create_doctor_profile(
    request: CreateDoctorRequest,
    current_user: User = Depends(get_current_admin),
):
    """
    Complete a doctor's profile.

    Requires admin. The user must already exist with the DOCTOR role and
    the license number must not be registered to another doctor.
    """
    doctor = await DoctorService.create_profile(current_user, request)
    responses = await DoctorService.to_responses([doctor])
    return DataResponse(message="Doctor profile created successfully", data=responses[0])


@router.get("", response_model=DataResponse[DoctorListResponse])
async def list_doctors(
    specialization: Optional[str] = None,
    department: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
):
    """List active doctors, optionally filtered by specialization and department."""
    doctors, total = await DoctorService.list_doctors(specialization, department, page, limit)
    return DataResponse(
        data=DoctorListResponse(
            doctors=await DoctorService.to_responses(doctors),
            pagination=Pagination.build(total, page, limit),
        )
    )


@router.get("/{doctor_id}", response_model=DataResponse[DoctorResponse])
async def get_doctor(
    doctor_id: str,
    current_user: User = Depends(get_current_user),
):
    doctor = await DoctorService.get_doctor(doctor_id)
    responses = await DoctorService.to_responses([doctor])
    return DataResponse(data=responses[0])
