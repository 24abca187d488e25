from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from academic_cycle.core.enums import YearStatus


class AcademicYearCreate(BaseModel):
    """Create academic year. label must be unique per institution."""

    label: str = Field(..., max_length=9, description="e.g. 2025/2026")
    start_date: date = Field(..., description="Academic year start date")
    end_date: date = Field(..., description="Academic year end date (must be after start_date)")
    status: YearStatus = Field(
        YearStatus.PLANNED,
        description="planned or active. active is rejected while another year is active.",
    )
    description: Optional[str] = None
    create_classes: bool = Field(True, description="Create one class per selected section, capacity = section max_students")
    selected_sections: List[UUID] = Field(default_factory=list, description="Sections to activate for this year")

    @field_validator("status")
    @classmethod
    def _not_archived(cls, value: YearStatus) -> YearStatus:
        if value == YearStatus.ARCHIVED:
            raise ValueError("An academic year cannot be created as archived")
        return value


class AcademicYearUpdate(BaseModel):
    """Field update plus optional section set. selected_sections replaces the set; omit it to leave it unchanged."""

    label: Optional[str] = Field(None, max_length=9)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    selected_sections: Optional[List[UUID]] = None


class SectionActivationResponse(BaseModel):
    section_id: UUID
    section_name: str
    status: str
    max_students: Optional[int] = None


class AcademicYearResponse(BaseModel):
    id: UUID
    institution_id: UUID
    label: str
    start_date: date
    end_date: date
    status: str
    description: Optional[str] = None
    section_activations: List[SectionActivationResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def section_ids(self) -> List[UUID]:
        return [a.section_id for a in self.section_activations]


class CreateAcademicYearResponse(BaseModel):
    academic_year: AcademicYearResponse
    classes_created: int = 0


class ArchiveAcademicYearResponse(BaseModel):
    """Archived year plus what the cascade touched."""

    academic_year: AcademicYearResponse
    classes_archived: int = 0
    students_deactivated: int = 0
    teachers_detached: int = 0
    activated_year: Optional[AcademicYearResponse] = Field(
        None,
        description="Most recent planned year, activated right after the archive (if any).",
    )
