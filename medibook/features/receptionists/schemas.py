# Receptionists Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import Field
from medibook.features.receptionists.models import Shift, EmploymentType, EmploymentStatus
from medibook.shared.schemas import CamelModel, Pagination


class CreateReceptionistRequest(CamelModel):
    """Request schema for completing a receptionist's profile."""
    user_id: str = Field(..., min_length=1)
    employee_id: str = Field(..., description="REC-YYYY-NNNN")
    shift: Optional[Shift] = None
    employment_type: Optional[EmploymentType] = None
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    department: Optional[str] = None
    hire_date: Optional[datetime] = None
    languages: List[str] = Field(default_factory=list)
    notes: str = ""


class ReceptionistResponse(CamelModel):
    id: str
    user: str
    name: str = ""
    email: Optional[str] = None
    employee_id: Optional[str] = None
    shift: Optional[Shift] = None
    employment_type: Optional[EmploymentType] = None
    employment_status: EmploymentStatus
    department: Optional[str] = None
    hire_date: Optional[datetime] = None
    languages: List[str] = Field(default_factory=list)
    notes: str = ""
    created_at: datetime
    updated_at: datetime


class ReceptionistListResponse(CamelModel):
    receptionists: List[ReceptionistResponse]
    pagination: Pagination
