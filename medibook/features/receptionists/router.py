# Receptionists Feature - Router

from fastapi import APIRouter, Depends, Query, status
from medibook.features.auth.dependencies import get_current_admin, get_current_staff
from medibook.features.auth.models import User
from medibook.features.receptionists.schemas import (
    CreateReceptionistRequest,
    ReceptionistResponse,
    ReceptionistListResponse,
)
from medibook.features.receptionists.service import ReceptionistService
from medibook.shared.schemas import DataResponse, Pagination


router = APIRouter(prefix="/receptionists", tags=["Receptionists"])


@router.post("", response_model=DataResponse[ReceptionistResponse], status_code=status.HTTP_201_CREATED)
async def create_receptionist_profile(
    request: CreateReceptionistRequest,
    current_user: User = Depends(get_current_admin),
):
    """
    Complete a receptionist's profile.

    - **employeeId**: REC-YYYY-NNNN, unique across receptionists
    """
    receptionist = await ReceptionistService.create_profile(current_user, request)
    responses = await ReceptionistService.to_responses([receptionist])
    return DataResponse(message="Receptionist profile created successfully", data=responses[0])


@router.get("", response_model=DataResponse[ReceptionistListResponse])
async def list_receptionists(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_staff),
):
    receptionists, total = await ReceptionistService.list_receptionists(page, limit)
    return DataResponse(
        data=ReceptionistListResponse(
            receptionists=await ReceptionistService.to_responses(receptionists),
            pagination=Pagination.build(total, page, limit),
        )
    )


@router.get("/{receptionist_id}", response_model=DataResponse[ReceptionistResponse])
async def get_receptionist(
    receptionist_id: str,
    current_user: User = Depends(get_current_staff),
):
    receptionist = await ReceptionistService.get_receptionist(receptionist_id)
    responses = await ReceptionistService.to_responses([receptionist])
    return DataResponse(data=responses[0])
