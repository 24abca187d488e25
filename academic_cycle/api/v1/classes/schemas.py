from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassResponse(BaseModel):
    id: UUID
    institution_id: UUID
    academic_year_id: UUID
    academic_year: str = Field(..., description="Academic year label, e.g. 2025/2026")
    year: int
    section: str
    capacity: int
    student_count: int = 0
    status: str
    is_active: bool
    main_teacher_id: Optional[UUID] = None
    co_teacher_ids: List[UUID] = Field(default_factory=list)
    archived_at: Optional[datetime] = None
