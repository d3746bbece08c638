# Receptionists Feature - Models

import re
from enum import Enum
from typing import Optional, List
from datetime import datetime
from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from medibook.shared.models import TimestampMixin


EMPLOYEE_ID_PATTERN = re.compile(r"^REC-\d{4}-\d{4}$")


class Shift(str, Enum):
    MORNING = "MORNING"
    EVENING = "EVENING"
    NIGHT = "NIGHT"
    ROTATING = "ROTATING"


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"


class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ON_LEAVE = "ON_LEAVE"
    TERMINATED = "TERMINATED"


class Receptionist(Document, TimestampMixin):
    """Receptionist document model. One per user."""

    user: Indexed(str, unique=True)  # References User._id
    employee_id: Optional[str] = None  # REC-YYYY-NNNN

    shift: Optional[Shift] = None
    employment_type: Optional[EmploymentType] = None
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    department: Optional[str] = None
    hire_date: Optional[datetime] = None
    languages: List[str] = Field(default_factory=list)
    notes: str = ""

    class Settings:
        name = "receptionists"
        use_state_management = True
        keep_nulls = False
        indexes = [
            IndexModel(
                [("employee_id", ASCENDING)],
                unique=True,
                sparse=True,
                name="receptionist_employee_id_unique",
            ),
        ]
