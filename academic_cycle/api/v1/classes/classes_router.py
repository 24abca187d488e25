from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.core.exceptions import ServiceError
from academic_cycle.db.session import get_db

from .schemas import ClassResponse
from . import service

router = APIRouter(prefix="/api/v1/institutions/{institution_id}/classes", tags=["classes"])


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    institution_id: UUID,
    academic_year: Optional[str] = Query(None, description="Academic year label, e.g. 2025/2026"),
    db: AsyncSession = Depends(get_db),
) -> List[ClassResponse]:
    try:
        return await service.list_classes(db, institution_id, academic_year=academic_year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
