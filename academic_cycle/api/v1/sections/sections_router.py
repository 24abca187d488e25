from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.core.exceptions import ServiceError
from academic_cycle.core.services import get_institution_or_raise
from academic_cycle.db.session import get_db

from .schemas import SectionCreate, SectionDeactivateResponse, SectionResponse
from . import service

router = APIRouter(prefix="/api/v1/institutions/{institution_id}/sections", tags=["sections"])


@router.post(
    "",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_section(
    institution_id: UUID,
    payload: SectionCreate,
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    try:
        return await service.create_section(db, institution_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[SectionResponse])
async def list_sections(
    institution_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[SectionResponse]:
    try:
        await get_institution_or_raise(db, institution_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await service.list_sections(db, institution_id)


@router.post("/{name}/deactivate", response_model=SectionDeactivateResponse)
async def deactivate_section(
    institution_id: UUID,
    name: str,
    db: AsyncSession = Depends(get_db),
) -> SectionDeactivateResponse:
    """Stop offering the section: archives its active classes, students wait for a new class."""
    try:
        return await service.deactivate_section(db, institution_id, name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{name}/reactivate", response_model=SectionResponse)
async def reactivate_section(
    institution_id: UUID,
    name: str,
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    try:
        return await service.reactivate_section(db, institution_id, name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
