from datetime import datetime, timezone
from typing import Dict, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.api.v1.classes import service as class_service
from academic_cycle.core.exceptions import DuplicateSectionName, NotFoundError, ValidationError
from academic_cycle.core.logging import get_logger
from academic_cycle.core.models import AcademicYear, SchoolClass, Section, SectionYearActivation
from academic_cycle.core.services import get_institution_or_raise
from academic_cycle.lifecycle.namespace import validate_max_students, validate_name

from .schemas import SectionCreate, SectionDeactivateResponse, SectionResponse

logger = get_logger(__name__)


def _section_to_response(s: Section, year_labels: List[str]) -> SectionResponse:
    return SectionResponse(
        id=s.id,
        institution_id=s.institution_id,
        name=s.name,
        max_students=s.max_students,
        is_active=s.is_active,
        year_activations=year_labels,
        created_at=s.created_at,
    )


async def _year_labels_by_section(db: AsyncSession, section_ids: List[UUID]) -> Dict[UUID, List[str]]:
    """section_id -> labels of the academic years it has an activation record for."""
    if not section_ids:
        return {}
    r = await db.execute(
        select(SectionYearActivation.section_id, AcademicYear.label)
        .join(AcademicYear, AcademicYear.id == SectionYearActivation.academic_year_id)
        .where(SectionYearActivation.section_id.in_(section_ids))
        .order_by(AcademicYear.label)
    )
    out: Dict[UUID, List[str]] = {}
    for section_id, label in r.all():
        out.setdefault(section_id, []).append(label)
    return out


async def _get_section_by_name(db: AsyncSession, institution_id: UUID, name: str) -> Section:
    result = await db.execute(
        select(Section).where(
            Section.institution_id == institution_id,
            Section.name == name,
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFoundError(f"Section {name} not found")
    return obj


async def list_sections(db: AsyncSession, institution_id: UUID) -> List[SectionResponse]:
    stmt = select(Section).where(Section.institution_id == institution_id).order_by(Section.name)
    result = await db.execute(stmt)
    rows = result.scalars().all()
    labels = await _year_labels_by_section(db, [s.id for s in rows])
    return [_section_to_response(s, labels.get(s.id, [])) for s in rows]


async def create_section(
    db: AsyncSession,
    institution_id: UUID,
    payload: SectionCreate,
) -> SectionResponse:
    """Create a section. Name must be a free letter; capacity within the school type bounds."""
    institution = await get_institution_or_raise(db, institution_id)
    existing = await db.execute(select(Section.name).where(Section.institution_id == institution_id))
    name = validate_name(payload.name.strip(), existing.scalars().all())
    max_students = payload.max_students if payload.max_students is not None else institution.default_max_students
    validate_max_students(max_students, institution.school_type)
    obj = Section(
        institution_id=institution_id,
        name=name,
        max_students=max_students,
        is_active=payload.is_active,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateSectionName(f"Section {name} already exists")
    await db.refresh(obj)
    logger.info("section_created", institution_id=str(institution_id), name=name, max_students=max_students)
    return _section_to_response(obj, [])


async def deactivate_section(
    db: AsyncSession,
    institution_id: UUID,
    name: str,
) -> SectionDeactivateResponse:
    """
    Stop offering a section. Its active classes are archived and their teachers detached;
    the students are left pending a new class assignment.
    """
    obj = await _get_section_by_name(db, institution_id, name)
    if not obj.is_active:
        raise ValidationError(f"Section {name} is already inactive")
    r = await db.execute(
        select(SchoolClass.id).where(
            SchoolClass.institution_id == institution_id,
            SchoolClass.section == name,
            SchoolClass.is_active.is_(True),
        )
    )
    counts = await class_service.archive_classes(db, list(r.scalars().all()), class_service.UNASSIGNED_STUDENT_VALUES)
    obj.is_active = False
    obj.deactivated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(obj)
    logger.info(
        "section_deactivated",
        institution_id=str(institution_id),
        name=name,
        classes=counts.classes_archived,
        students=counts.students_updated,
    )
    labels = await _year_labels_by_section(db, [obj.id])
    return SectionDeactivateResponse(
        section=_section_to_response(obj, labels.get(obj.id, [])),
        classes_archived=counts.classes_archived,
        students_unassigned=counts.students_updated,
    )


async def reactivate_section(
    db: AsyncSession,
    institution_id: UUID,
    name: str,
) -> SectionResponse:
    """Offer the section again. Classes archived by the deactivation stay archived."""
    obj = await _get_section_by_name(db, institution_id, name)
    if obj.is_active:
        raise ValidationError(f"Section {name} is already active")
    obj.is_active = True
    obj.deactivated_at = None
    await db.commit()
    await db.refresh(obj)
    logger.info("section_reactivated", institution_id=str(institution_id), name=name)
    labels = await _year_labels_by_section(db, [obj.id])
    return _section_to_response(obj, labels.get(obj.id, []))
