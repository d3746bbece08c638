# Appointments Feature - Router

from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from medibook.features.appointments.schemas import (
    BookAppointmentRequest,
    CreateAppointmentRequest,
    AppointmentResponse,
    AppointmentListResponse,
)
from medibook.features.appointments.service import AppointmentService
from medibook.features.auth.dependencies import get_current_user, get_current_staff, require_roles
from medibook.features.auth.models import User, Role
from medibook.shared.schemas import DataResponse, Pagination


router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.post(
    "/book",
    response_model=DataResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def book_appointment(
    request: BookAppointmentRequest,
    current_user: User = Depends(require_roles(Role.PATIENT)),
):
    """
    Book an appointment with a doctor for the calling patient.

    The caller must have a patient profile. Fails with 409 when the doctor's
    slot is already taken.
    """
    appointment = await AppointmentService.book_appointment(current_user, request)
    return DataResponse(
        message="Appointment booked successfully",
        data=await AppointmentService.to_response(appointment, current_user),
    )


@router.post(
    "",
    response_model=DataResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    request: CreateAppointmentRequest,
    current_user: User = Depends(get_current_staff),
):
    """Create an appointment on behalf of a patient. Requires admin or receptionist."""
    appointment = await AppointmentService.create_appointment(current_user, request)
    return DataResponse(
        message="Appointment created successfully",
        data=await AppointmentService.to_response(appointment, current_user),
    )


@router.get("", response_model=DataResponse[AppointmentListResponse])
async def list_appointments(
    status: Optional[str] = None,
    type: Optional[str] = None,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_user),
):
    """
    List appointments visible to the caller.

    - Admins and receptionists see all appointments
    - Doctors see their own (and ones they are the pharmacist on)
    - Patients see their own
    - **includeInactive**: include cancelled appointments (staff only)
    """
    appointments, total = await AppointmentService.list_appointments(
        current_user,
        status=status,
        type=type,
        date=date,
        page=page,
        limit=limit,
        include_inactive=include_inactive,
    )
    return DataResponse(
        data=AppointmentListResponse(
            appointments=await AppointmentService.to_responses(appointments, current_user),
            pagination=Pagination.build(total, page, limit),
        )
    )


@router.get("/{appointment_id}", response_model=DataResponse[AppointmentResponse])
async def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
):
    """Get a single appointment, cancelled ones included."""
    appointment = await AppointmentService.get_appointment_for_user(appointment_id, current_user)
    return DataResponse(data=await AppointmentService.to_response(appointment, current_user))


@router.patch("/{appointment_id}", response_model=DataResponse[AppointmentResponse])
async def update_appointment(
    appointment_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
):
    """
    Update an appointment.

    Only the fields the caller's role may write are applied; anything else in
    the body is ignored.
    """
    appointment = await AppointmentService.update_appointment(appointment_id, current_user, payload)
    return DataResponse(
        message="Appointment updated successfully",
        data=await AppointmentService.to_response(appointment, current_user),
    )


@router.delete("/{appointment_id}", response_model=DataResponse[AppointmentResponse])
async def cancel_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
):
    """Cancel an appointment. It stays retrievable by id."""
    appointment = await AppointmentService.cancel_appointment(appointment_id, current_user)
    return DataResponse(
        message="Appointment cancelled successfully",
        data=await AppointmentService.to_response(appointment, current_user),
    )
