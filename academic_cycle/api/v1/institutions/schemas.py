from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from academic_cycle.api.v1.academic_years.schemas import AcademicYearResponse
from academic_cycle.api.v1.sections.schemas import SectionResponse
from academic_cycle.core.enums import SchoolType


class InstitutionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    school_type: SchoolType
    default_max_students: int = Field(25, ge=1, le=40)


class InstitutionResponse(BaseModel):
    """Institution with its sections and academic years nested, the snapshot the lifecycle core loads."""

    id: UUID
    name: str
    school_type: str
    default_max_students: int
    sections: List[SectionResponse] = Field(default_factory=list)
    academic_years: List[AcademicYearResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
