from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.api.v1.academic_years import service as academic_year_service
from academic_cycle.api.v1.sections import service as section_service
from academic_cycle.core.exceptions import ConflictError
from academic_cycle.core.logging import get_logger
from academic_cycle.core.models import Institution
from academic_cycle.core.services import get_institution_or_raise

from .schemas import InstitutionCreate, InstitutionResponse

logger = get_logger(__name__)


async def create_institution(db: AsyncSession, payload: InstitutionCreate) -> InstitutionResponse:
    obj = Institution(
        name=payload.name.strip(),
        school_type=payload.school_type.value,
        default_max_students=payload.default_max_students,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Institution '{payload.name}' already exists")
    await db.refresh(obj)
    logger.info("institution_created", institution_id=str(obj.id), school_type=obj.school_type)
    return await get_institution(db, obj.id)


async def get_institution(db: AsyncSession, institution_id: UUID) -> InstitutionResponse:
    """Institution with nested sections and academic years."""
    institution = await get_institution_or_raise(db, institution_id)
    sections = await section_service.list_sections(db, institution_id)
    years = await academic_year_service.list_academic_years(db, institution_id)
    return InstitutionResponse(
        id=institution.id,
        name=institution.name,
        school_type=institution.school_type,
        default_max_students=institution.default_max_students,
        sections=sections,
        academic_years=years,
        created_at=institution.created_at,
        updated_at=institution.updated_at,
    )
