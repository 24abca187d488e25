from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.core.exceptions import ServiceError
from academic_cycle.db.session import get_db

from .schemas import InstitutionCreate, InstitutionResponse
from . import service

router = APIRouter(prefix="/api/v1/institutions", tags=["institutions"])


@router.post(
    "",
    response_model=InstitutionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_institution(
    payload: InstitutionCreate,
    db: AsyncSession = Depends(get_db),
) -> InstitutionResponse:
    try:
        return await service.create_institution(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{institution_id}", response_model=InstitutionResponse)
async def get_institution(
    institution_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> InstitutionResponse:
    """Institution with nested sections and academic years."""
    try:
        return await service.get_institution(db, institution_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
