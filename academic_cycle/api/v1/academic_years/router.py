from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.core.exceptions import ServiceError
from academic_cycle.core.services import get_institution_or_raise
from academic_cycle.db.session import get_db

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AcademicYearUpdate,
    ArchiveAcademicYearResponse,
    CreateAcademicYearResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/institutions/{institution_id}/academic-years", tags=["academic-years"])


@router.post(
    "",
    response_model=CreateAcademicYearResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_academic_year(
    institution_id: UUID,
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
) -> CreateAcademicYearResponse:
    """Create academic year (planned or active), activate the selected sections, optionally create their classes."""
    try:
        return await service.create_academic_year(db, institution_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[AcademicYearResponse])
async def list_academic_years(
    institution_id: UUID,
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status: planned, active, archived"),
    db: AsyncSession = Depends(get_db),
) -> List[AcademicYearResponse]:
    try:
        await get_institution_or_raise(db, institution_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await service.list_academic_years(db, institution_id, status_filter=status_filter)


@router.get("/{academic_year_id}", response_model=AcademicYearResponse)
async def get_academic_year(
    institution_id: UUID,
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.get_academic_year(db, institution_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{academic_year_id}", response_model=AcademicYearResponse)
async def update_academic_year(
    institution_id: UUID,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """Update label/dates/description; selected_sections replaces the activated section set."""
    try:
        return await service.update_academic_year(db, institution_id, academic_year_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{academic_year_id}/activate", response_model=AcademicYearResponse)
async def activate_academic_year(
    institution_id: UUID,
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """planned -> active. 409 while another year is active."""
    try:
        return await service.activate_academic_year(db, institution_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{academic_year_id}/archive", response_model=ArchiveAcademicYearResponse)
async def archive_academic_year(
    institution_id: UUID,
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ArchiveAcademicYearResponse:
    """active -> archived with the class/teacher/student cascade. Safe to call again after a failure."""
    try:
        return await service.archive_academic_year(db, institution_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{academic_year_id}/reactivate", response_model=AcademicYearResponse)
async def reactivate_academic_year(
    institution_id: UUID,
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """archived -> planned. Archived classes stay archived."""
    try:
        return await service.reactivate_academic_year(db, institution_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
