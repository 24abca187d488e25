from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=1, description="Single uppercase letter A-Z")
    max_students: Optional[int] = Field(
        None,
        description="15..30 for middle schools, 15..35 otherwise. Defaults to the institution default.",
    )
    is_active: bool = True


class SectionResponse(BaseModel):
    id: UUID
    institution_id: UUID
    name: str
    max_students: int
    is_active: bool
    year_activations: List[str] = Field(default_factory=list, description="Labels of years this section is activated for")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SectionDeactivateResponse(BaseModel):
    section: SectionResponse
    classes_archived: int = 0
    students_unassigned: int = 0
