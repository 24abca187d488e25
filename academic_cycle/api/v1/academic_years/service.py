from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.api.v1.classes import service as class_service
from academic_cycle.core.enums import YearStatus
from academic_cycle.core.exceptions import CascadeFailure, ConflictError, NotFoundError, ValidationError
from academic_cycle.core.logging import get_logger
from academic_cycle.core.models import AcademicYear, SchoolClass, Section, SectionYearActivation
from academic_cycle.core.services import get_institution_or_raise
from academic_cycle.lifecycle.registry import validate_dates, validate_label
from academic_cycle.lifecycle.selection import diff

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AcademicYearUpdate,
    ArchiveAcademicYearResponse,
    CreateAcademicYearResponse,
    SectionActivationResponse,
)

logger = get_logger(__name__)


def _to_response(ay: AcademicYear, activations: Optional[List[SectionActivationResponse]] = None) -> AcademicYearResponse:
    return AcademicYearResponse(
        id=ay.id,
        institution_id=ay.institution_id,
        label=ay.label,
        start_date=ay.start_date,
        end_date=ay.end_date,
        status=ay.status,
        description=ay.description,
        section_activations=activations or [],
        created_at=ay.created_at,
        updated_at=ay.updated_at,
        activated_at=ay.activated_at,
        archived_at=ay.archived_at,
    )


async def _activations_by_year(db: AsyncSession, year_ids: Sequence[UUID]) -> Dict[UUID, List[SectionActivationResponse]]:
    """year_id -> activation records joined with section names, ordered by name."""
    if not year_ids:
        return {}
    r = await db.execute(
        select(SectionYearActivation, Section.name)
        .join(Section, Section.id == SectionYearActivation.section_id)
        .where(SectionYearActivation.academic_year_id.in_(list(year_ids)))
        .order_by(Section.name)
    )
    out: Dict[UUID, List[SectionActivationResponse]] = {}
    for activation, section_name in r.all():
        out.setdefault(activation.academic_year_id, []).append(
            SectionActivationResponse(
                section_id=activation.section_id,
                section_name=section_name,
                status=activation.status,
                max_students=activation.max_students,
            )
        )
    return out


async def _response_for(db: AsyncSession, ay: AcademicYear) -> AcademicYearResponse:
    activations = await _activations_by_year(db, [ay.id])
    return _to_response(ay, activations.get(ay.id, []))


async def _get_year(db: AsyncSession, institution_id: UUID, academic_year_id: UUID) -> AcademicYear:
    result = await db.execute(
        select(AcademicYear).where(
            AcademicYear.id == academic_year_id,
            AcademicYear.institution_id == institution_id,
        )
    )
    ay = result.scalar_one_or_none()
    if not ay:
        raise NotFoundError("Academic year not found")
    return ay


async def _get_active_year(
    db: AsyncSession,
    institution_id: UUID,
    exclude_id: Optional[UUID] = None,
) -> Optional[AcademicYear]:
    stmt = select(AcademicYear).where(
        AcademicYear.institution_id == institution_id,
        AcademicYear.status == YearStatus.ACTIVE.value,
    )
    if exclude_id is not None:
        stmt = stmt.where(AcademicYear.id != exclude_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def _ensure_label_free(
    db: AsyncSession,
    institution_id: UUID,
    label: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    stmt = select(AcademicYear.id).where(
        AcademicYear.institution_id == institution_id,
        AcademicYear.label == label,
    )
    if exclude_id is not None:
        stmt = stmt.where(AcademicYear.id != exclude_id)
    existing = await db.execute(stmt)
    if existing.scalar_one_or_none():
        raise ConflictError(f"Academic year {label} already exists for this institution")


async def _resolve_sections(db: AsyncSession, institution_id: UUID, section_ids: Sequence[UUID]) -> List[Section]:
    if not section_ids:
        return []
    wanted = set(section_ids)
    r = await db.execute(
        select(Section).where(Section.institution_id == institution_id, Section.id.in_(wanted)).order_by(Section.name)
    )
    sections = list(r.scalars().all())
    missing = wanted - {s.id for s in sections}
    if missing:
        raise NotFoundError(f"Section(s) not found: {', '.join(sorted(str(m) for m in missing))}")
    return sections


async def _set_status(db: AsyncSession, ay: AcademicYear, new_status: YearStatus) -> None:
    """Flip the year status; its activation records follow."""
    now = datetime.now(timezone.utc)
    ay.status = new_status.value
    if new_status == YearStatus.ACTIVE:
        ay.activated_at = now
    elif new_status == YearStatus.ARCHIVED:
        ay.archived_at = now
    else:
        ay.archived_at = None
    await db.execute(
        update(SectionYearActivation)
        .where(SectionYearActivation.academic_year_id == ay.id)
        .values(status=new_status.value)
    )
    await db.flush()


async def create_academic_year(
    db: AsyncSession,
    institution_id: UUID,
    payload: AcademicYearCreate,
) -> CreateAcademicYearResponse:
    """Create academic year, its section activations and (optionally) one class per selected section."""
    await get_institution_or_raise(db, institution_id)
    label = validate_label(payload.label.strip())
    validate_dates(payload.start_date, payload.end_date)
    if payload.create_classes and not payload.selected_sections:
        raise ValidationError("Select at least one section to create classes for")
    await _ensure_label_free(db, institution_id, label)
    if payload.status == YearStatus.ACTIVE:
        other = await _get_active_year(db, institution_id)
        if other:
            raise ConflictError(f"Academic year {other.label} is already active; archive it first")
    sections = await _resolve_sections(db, institution_id, payload.selected_sections)

    ay = AcademicYear(
        institution_id=institution_id,
        label=label,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=payload.status.value,
        description=payload.description,
        activated_at=datetime.now(timezone.utc) if payload.status == YearStatus.ACTIVE else None,
    )
    db.add(ay)
    try:
        await db.flush()
        for section in sections:
            db.add(
                SectionYearActivation(
                    section_id=section.id,
                    academic_year_id=ay.id,
                    status=ay.status,
                    max_students=section.max_students,
                )
            )
        classes_created = 0
        if payload.create_classes:
            classes_created = await class_service.create_classes_for_sections(db, ay, sections)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Another academic year is already active or the label is taken")
    await db.refresh(ay)
    logger.info(
        "academic_year_created",
        institution_id=str(institution_id),
        label=ay.label,
        status=ay.status,
        sections=len(sections),
        classes=classes_created,
    )
    return CreateAcademicYearResponse(academic_year=await _response_for(db, ay), classes_created=classes_created)


async def list_academic_years(
    db: AsyncSession,
    institution_id: UUID,
    status_filter: Optional[str] = None,
) -> List[AcademicYearResponse]:
    """Academic years of the institution, most recent label first."""
    stmt = select(AcademicYear).where(AcademicYear.institution_id == institution_id)
    if status_filter:
        stmt = stmt.where(AcademicYear.status == status_filter)
    stmt = stmt.order_by(AcademicYear.label.desc())
    result = await db.execute(stmt)
    rows = result.scalars().all()
    activations = await _activations_by_year(db, [ay.id for ay in rows])
    return [_to_response(ay, activations.get(ay.id, [])) for ay in rows]


async def get_academic_year(
    db: AsyncSession,
    institution_id: UUID,
    academic_year_id: UUID,
) -> AcademicYearResponse:
    ay = await _get_year(db, institution_id, academic_year_id)
    return await _response_for(db, ay)


async def update_academic_year(
    db: AsyncSession,
    institution_id: UUID,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
) -> AcademicYearResponse:
    """Update fields and, when selected_sections is given, add/remove activation records to match it.

    Allowed in any status. Classes already created are left alone.
    """
    ay = await _get_year(db, institution_id, academic_year_id)
    if payload.label is not None:
        label = validate_label(payload.label.strip())
        if label != ay.label:
            await _ensure_label_free(db, institution_id, label, exclude_id=ay.id)
            ay.label = label
            await db.execute(
                update(SchoolClass).where(SchoolClass.academic_year_id == ay.id).values(academic_year_label=label)
            )
    if payload.start_date is not None:
        ay.start_date = payload.start_date
    if payload.end_date is not None:
        ay.end_date = payload.end_date
    if payload.start_date is not None or payload.end_date is not None:
        validate_dates(ay.start_date, ay.end_date)
    if payload.description is not None:
        ay.description = payload.description

    if payload.selected_sections is not None:
        r = await db.execute(
            select(SectionYearActivation.section_id).where(SectionYearActivation.academic_year_id == ay.id)
        )
        delta = diff(r.scalars().all(), payload.selected_sections)
        added = await _resolve_sections(db, institution_id, list(delta.added))
        for section in added:
            db.add(
                SectionYearActivation(
                    section_id=section.id,
                    academic_year_id=ay.id,
                    status=ay.status,
                    max_students=section.max_students,
                )
            )
        if delta.removed:
            await db.execute(
                delete(SectionYearActivation).where(
                    SectionYearActivation.academic_year_id == ay.id,
                    SectionYearActivation.section_id.in_(list(delta.removed)),
                )
            )
        logger.info(
            "academic_year_sections_changed",
            label=ay.label,
            added=len(delta.added),
            removed=len(delta.removed),
        )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Academic year label or section activation conflict")
    await db.refresh(ay)
    return await _response_for(db, ay)


async def activate_academic_year(
    db: AsyncSession,
    institution_id: UUID,
    academic_year_id: UUID,
) -> AcademicYearResponse:
    """planned -> active. Rejected while another year is active; the unique index settles races."""
    ay = await _get_year(db, institution_id, academic_year_id)
    if ay.status != YearStatus.PLANNED.value:
        raise ValidationError(f"Only planned academic years can be activated ({ay.label} is {ay.status})")
    other = await _get_active_year(db, institution_id, exclude_id=ay.id)
    if other:
        raise ConflictError(f"Academic year {other.label} is already active; archive it first")
    try:
        await _set_status(db, ay, YearStatus.ACTIVE)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Another academic year was activated concurrently")
    await db.refresh(ay)
    logger.info("academic_year_activated", institution_id=str(institution_id), label=ay.label)
    return await _response_for(db, ay)


async def archive_academic_year(
    db: AsyncSession,
    institution_id: UUID,
    academic_year_id: UUID,
) -> ArchiveAcademicYearResponse:
    """
    active -> archived, in one transaction:
    classes archived, their teachers detached, enrolled students deactivated, teacher profiles
    cleaned, then the most recent planned year (by label) activated.

    Calling it again on an archived year re-applies the class cascade and activates nothing.
    """
    ay = await _get_year(db, institution_id, academic_year_id)
    if ay.status == YearStatus.PLANNED.value:
        raise ValidationError(f"Only the active academic year can be archived ({ay.label} is planned)")
    first_run = ay.status == YearStatus.ACTIVE.value

    try:
        r = await db.execute(select(SchoolClass.id).where(SchoolClass.academic_year_id == ay.id))
        counts = await class_service.archive_classes(
            db,
            list(r.scalars().all()),
            class_service.DEACTIVATED_STUDENT_VALUES,
        )
        activated: Optional[AcademicYear] = None
        if first_run:
            await _set_status(db, ay, YearStatus.ARCHIVED)
            result = await db.execute(
                select(AcademicYear)
                .where(
                    AcademicYear.institution_id == institution_id,
                    AcademicYear.status == YearStatus.PLANNED.value,
                )
                .order_by(AcademicYear.label.desc())
                .limit(1)
            )
            activated = result.scalar_one_or_none()
            if activated is not None:
                await _set_status(db, activated, YearStatus.ACTIVE)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Another academic year was activated concurrently")
    except SQLAlchemyError as e:
        await db.rollback()
        raise CascadeFailure(f"Archiving academic year {ay.label} failed: {e.__class__.__name__}")

    await db.refresh(ay)
    logger.info(
        "academic_year_archived",
        institution_id=str(institution_id),
        label=ay.label,
        classes=counts.classes_archived,
        students=counts.students_updated,
        teachers=counts.teachers_detached,
        activated=activated.label if activated else None,
        retry=not first_run,
    )
    activated_response = None
    if activated is not None:
        await db.refresh(activated)
        activated_response = await _response_for(db, activated)
    return ArchiveAcademicYearResponse(
        academic_year=await _response_for(db, ay),
        classes_archived=counts.classes_archived,
        students_deactivated=counts.students_updated,
        teachers_detached=counts.teachers_detached,
        activated_year=activated_response,
    )


async def reactivate_academic_year(
    db: AsyncSession,
    institution_id: UUID,
    academic_year_id: UUID,
) -> AcademicYearResponse:
    """archived -> planned. Archived classes and deactivated students are not restored."""
    ay = await _get_year(db, institution_id, academic_year_id)
    if ay.status != YearStatus.ARCHIVED.value:
        raise ValidationError(f"Only archived academic years can be reactivated ({ay.label} is {ay.status})")
    try:
        await _set_status(db, ay, YearStatus.PLANNED)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise CascadeFailure(f"Reactivating academic year {ay.label} failed: {e.__class__.__name__}")
    await db.refresh(ay)
    logger.info("academic_year_reactivated", institution_id=str(institution_id), label=ay.label)
    return await _response_for(db, ay)
