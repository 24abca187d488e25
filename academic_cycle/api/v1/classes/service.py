from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.core.enums import ClassStatus, StudentStatus
from academic_cycle.core.logging import get_logger
from academic_cycle.core.models import (
    AcademicYear,
    SchoolClass,
    Section,
    Student,
    class_co_teachers,
    teacher_class_links,
    teacher_student_links,
)
from academic_cycle.core.services import get_institution_or_raise

from .schemas import ClassResponse

logger = get_logger(__name__)

# Student state after their class was archived with its academic year.
DEACTIVATED_STUDENT_VALUES: Dict[str, Any] = {
    "is_active": False,
    "status": StudentStatus.INACTIVE.value,
}

# Student state after their section was deactivated: waiting for a new class.
UNASSIGNED_STUDENT_VALUES: Dict[str, Any] = {
    "status": StudentStatus.PENDING.value,
    "class_id": None,
    "main_teacher_id": None,
    "needs_class_assignment": True,
}


@dataclass
class CascadeCounts:
    classes_archived: int = 0
    students_updated: int = 0
    teachers_detached: int = 0


def _class_to_response(c: SchoolClass, student_count: int = 0, co_teacher_ids: Optional[List[UUID]] = None) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        institution_id=c.institution_id,
        academic_year_id=c.academic_year_id,
        academic_year=c.academic_year_label,
        year=c.year,
        section=c.section,
        capacity=c.capacity,
        student_count=student_count,
        status=c.status,
        is_active=c.is_active,
        main_teacher_id=c.main_teacher_id,
        co_teacher_ids=co_teacher_ids or [],
        archived_at=c.archived_at,
    )


async def _student_counts(db: AsyncSession, class_ids: List[UUID]) -> Dict[UUID, int]:
    """class_id -> number of active students enrolled."""
    if not class_ids:
        return {}
    r = await db.execute(
        select(Student.class_id, func.count(Student.id).label("cnt"))
        .where(Student.class_id.in_(class_ids), Student.is_active.is_(True))
        .group_by(Student.class_id)
    )
    return {row.class_id: row.cnt for row in r.all()}


async def _co_teachers(db: AsyncSession, class_ids: List[UUID]) -> Dict[UUID, List[UUID]]:
    if not class_ids:
        return {}
    r = await db.execute(
        select(class_co_teachers.c.class_id, class_co_teachers.c.teacher_id).where(
            class_co_teachers.c.class_id.in_(class_ids)
        )
    )
    out: Dict[UUID, List[UUID]] = {}
    for class_id, teacher_id in r.all():
        out.setdefault(class_id, []).append(teacher_id)
    return out


async def list_classes(
    db: AsyncSession,
    institution_id: UUID,
    academic_year: Optional[str] = None,
) -> List[ClassResponse]:
    """Classes of the institution, optionally only those of one academic year label."""
    await get_institution_or_raise(db, institution_id)
    stmt = select(SchoolClass).where(SchoolClass.institution_id == institution_id)
    if academic_year is not None:
        stmt = stmt.where(SchoolClass.academic_year_label == academic_year)
    stmt = stmt.order_by(SchoolClass.year, SchoolClass.section)
    result = await db.execute(stmt)
    rows = result.scalars().all()
    class_ids = [c.id for c in rows]
    counts = await _student_counts(db, class_ids)
    co_teachers = await _co_teachers(db, class_ids)
    return [_class_to_response(c, counts.get(c.id, 0), co_teachers.get(c.id)) for c in rows]


async def create_classes_for_sections(
    db: AsyncSession,
    academic_year: AcademicYear,
    sections: Iterable[Section],
) -> int:
    """Add one first-grade class per section, capacity = section max_students. Caller commits."""
    created = 0
    for section in sections:
        db.add(
            SchoolClass(
                institution_id=academic_year.institution_id,
                academic_year_id=academic_year.id,
                academic_year_label=academic_year.label,
                year=1,
                section=section.name,
                capacity=section.max_students,
                status=ClassStatus.ACTIVE.value,
                is_active=True,
            )
        )
        created += 1
    await db.flush()
    return created


async def archive_classes(
    db: AsyncSession,
    class_ids: List[UUID],
    student_values: Dict[str, Any],
) -> CascadeCounts:
    """
    Archive classes and detach everything that points at them. Caller commits.

    1. classes -> status archived, is_active false, main teacher cleared
    2. co-teacher rows removed
    3. enrolled students updated with student_values
    4. teacher profile links to those classes and students removed

    Safe to run again on already archived classes: only rows still attached are touched.
    """
    counts = CascadeCounts()
    if not class_ids:
        return counts

    teacher_ids: Set[UUID] = set()
    r = await db.execute(
        select(SchoolClass.main_teacher_id).where(
            SchoolClass.id.in_(class_ids),
            SchoolClass.main_teacher_id.is_not(None),
        )
    )
    teacher_ids.update(r.scalars().all())
    r = await db.execute(select(class_co_teachers.c.teacher_id).where(class_co_teachers.c.class_id.in_(class_ids)))
    teacher_ids.update(r.scalars().all())

    now = datetime.now(timezone.utc)
    r = await db.execute(
        select(SchoolClass.id).where(
            SchoolClass.id.in_(class_ids),
            SchoolClass.status != ClassStatus.ARCHIVED.value,
        )
    )
    counts.classes_archived = len(r.scalars().all())
    await db.execute(
        update(SchoolClass)
        .where(SchoolClass.id.in_(class_ids), SchoolClass.status != ClassStatus.ARCHIVED.value)
        .values(status=ClassStatus.ARCHIVED.value, is_active=False, archived_at=now)
    )
    await db.execute(update(SchoolClass).where(SchoolClass.id.in_(class_ids)).values(main_teacher_id=None))
    await db.execute(delete(class_co_teachers).where(class_co_teachers.c.class_id.in_(class_ids)))

    r = await db.execute(
        select(Student.id).where(
            Student.class_id.in_(class_ids),
            Student.is_active.is_(True),
        )
    )
    student_ids = list(r.scalars().all())
    if student_ids:
        await db.execute(update(Student).where(Student.id.in_(student_ids)).values(**student_values))
    counts.students_updated = len(student_ids)

    r = await db.execute(select(teacher_class_links.c.teacher_id).where(teacher_class_links.c.class_id.in_(class_ids)))
    teacher_ids.update(r.scalars().all())
    await db.execute(delete(teacher_class_links).where(teacher_class_links.c.class_id.in_(class_ids)))
    if student_ids:
        r = await db.execute(
            select(teacher_student_links.c.teacher_id).where(teacher_student_links.c.student_id.in_(student_ids))
        )
        teacher_ids.update(r.scalars().all())
        await db.execute(delete(teacher_student_links).where(teacher_student_links.c.student_id.in_(student_ids)))
    counts.teachers_detached = len(teacher_ids)

    await db.flush()
    logger.info(
        "classes_archived",
        classes=counts.classes_archived,
        students=counts.students_updated,
        teachers=counts.teachers_detached,
    )
    return counts
