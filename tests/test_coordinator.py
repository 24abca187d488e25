"""Lifecycle transitions driven through the HTTP gateway against the real service."""

from datetime import date
from typing import Dict, Optional
from uuid import UUID

import pytest
from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.api.v1.academic_years.schemas import AcademicYearCreate, AcademicYearUpdate
from academic_cycle.core.enums import YearStatus
from academic_cycle.core.exceptions import CascadeFailure, ConflictError, NotFoundError, ServiceError, ValidationError
from academic_cycle.core.models import (
    AcademicYear,
    SchoolClass,
    Student,
    class_co_teachers,
    teacher_class_links,
    teacher_student_links,
)
from academic_cycle.lifecycle.coordinator import TransitionCoordinator
from academic_cycle.lifecycle.gateway import HttpInstitutionGateway
from academic_cycle.lifecycle.selection import SelectionReconciler

from conftest import add_section, add_student, add_teacher


def draft(
    label: str,
    status: YearStatus = YearStatus.PLANNED,
    sections=(),
    create_classes: Optional[bool] = None,
) -> AcademicYearCreate:
    first, second = (int(part) for part in label.split("/"))
    return AcademicYearCreate(
        label=label,
        start_date=date(first, 9, 1),
        end_date=date(second, 6, 30),
        status=status,
        create_classes=bool(sections) if create_classes is None else create_classes,
        selected_sections=list(sections),
    )


async def classes_by_section(db: AsyncSession, year_id: UUID) -> Dict[str, UUID]:
    r = await db.execute(select(SchoolClass.section, SchoolClass.id).where(SchoolClass.academic_year_id == year_id))
    return {section: class_id for section, class_id in r.all()}


async def test_create_with_pending_sections_uses_the_ones_that_were_created(
    coordinator: TransitionCoordinator,
    institution,
    db_session: AsyncSession,
) -> None:
    await add_section(db_session, institution.id, "A")
    await coordinator.refresh()
    allocator = coordinator.allocator()
    selection = SelectionReconciler()
    selection.toggle(allocator.create_pending("B").temp_id)
    selection.toggle(allocator.create_pending("C").temp_id)
    # C gets taken by another session before the commit
    await add_section(db_session, institution.id, "C")

    outcome = await coordinator.create(draft("2025/2026", create_classes=True), selection, allocator)

    assert outcome.dropped_sections == ["C"]
    assert [a.section_name for a in outcome.year.section_activations] == ["B"]
    assert outcome.classes_created == 1
    assert set(await classes_by_section(db_session, outcome.year.id)) == {"B"}
    assert outcome.registry.planned()[0].label == "2025/2026"
    assert selection.selected == set(outcome.year.section_ids)
    assert allocator.pending() == []


async def test_create_rejects_duplicate_label_and_second_active_locally(coordinator: TransitionCoordinator) -> None:
    await coordinator.create(draft("2024/2025", YearStatus.ACTIVE))
    version = coordinator.registry.version

    with pytest.raises(ConflictError):
        await coordinator.create(draft("2024/2025"))
    with pytest.raises(ConflictError):
        await coordinator.create(draft("2025/2026", YearStatus.ACTIVE))
    with pytest.raises(ValidationError):
        await coordinator.create(draft("2025/2027"))

    assert coordinator.registry.version == version
    assert len(coordinator.registry) == 1


async def test_archive_cascade(
    coordinator: TransitionCoordinator,
    institution,
    db_session: AsyncSession,
) -> None:
    a = await add_section(db_session, institution.id, "A")
    b = await add_section(db_session, institution.id, "B")
    active = (await coordinator.create(draft("2024/2025", YearStatus.ACTIVE, [a.id, b.id]))).year
    planned = (await coordinator.create(draft("2025/2026"))).year
    classes = await classes_by_section(db_session, active.id)
    teacher = await add_teacher(db_session, institution.id, "anna.rossi@example.com")
    first = await add_student(db_session, institution.id, classes["A"], "Luca")
    second = await add_student(db_session, institution.id, classes["B"], "Sara")
    await db_session.execute(
        update(SchoolClass).where(SchoolClass.id == classes["A"]).values(main_teacher_id=teacher.id)
    )
    await db_session.execute(insert(class_co_teachers).values(class_id=classes["B"], teacher_id=teacher.id))
    await db_session.execute(
        insert(teacher_class_links),
        [{"teacher_id": teacher.id, "class_id": class_id} for class_id in classes.values()],
    )
    await db_session.execute(insert(teacher_student_links).values(teacher_id=teacher.id, student_id=first.id))
    await db_session.commit()

    outcome = await coordinator.archive(active.id)

    assert outcome.year.status == "archived"
    assert outcome.activated_year.id == planned.id
    assert coordinator.registry.current().id == planned.id
    assert [y.label for y in coordinator.registry.archived()] == ["2024/2025"]

    r = await db_session.execute(
        select(SchoolClass.status, SchoolClass.is_active, SchoolClass.main_teacher_id).where(
            SchoolClass.id.in_(list(classes.values()))
        )
    )
    assert sorted(r.all()) == [("archived", False, None), ("archived", False, None)]
    r = await db_session.execute(select(class_co_teachers))
    assert r.all() == []
    r = await db_session.execute(select(teacher_class_links).where(teacher_class_links.c.teacher_id == teacher.id))
    assert r.all() == []
    r = await db_session.execute(select(teacher_student_links).where(teacher_student_links.c.teacher_id == teacher.id))
    assert r.all() == []
    r = await db_session.execute(
        select(Student.is_active, Student.status).where(Student.id.in_([first.id, second.id]))
    )
    assert r.all() == [(False, "inactive"), (False, "inactive")]


async def test_archive_requires_active_year(coordinator: TransitionCoordinator) -> None:
    planned = (await coordinator.create(draft("2025/2026"))).year
    with pytest.raises(ValidationError):
        await coordinator.archive(planned.id)


async def test_activation_conflict_leaves_registry_unchanged(coordinator: TransitionCoordinator) -> None:
    active = (await coordinator.create(draft("2024/2025", YearStatus.ACTIVE))).year
    planned = (await coordinator.create(draft("2025/2026"))).year
    version = coordinator.registry.version

    with pytest.raises(ConflictError):
        await coordinator.activate(planned.id)

    assert coordinator.registry.version == version
    assert coordinator.registry.current().id == active.id
    assert coordinator.registry.get(planned.id).status == "planned"


async def test_activation_race_is_settled_by_the_service(
    gateway: HttpInstitutionGateway,
    institution,
    coordinator: TransitionCoordinator,
) -> None:
    first = (await coordinator.create(draft("2024/2025"))).year
    second = (await coordinator.create(draft("2025/2026"))).year
    other_session = TransitionCoordinator(gateway, institution.id)
    await other_session.refresh()

    await coordinator.activate(first.id)
    # the other session's snapshot still shows no active year
    assert other_session.registry.current() is None
    version = other_session.registry.version
    with pytest.raises(ConflictError):
        await other_session.activate(second.id)
    assert other_session.registry.version == version


async def test_reactivation_keeps_classes_archived(
    coordinator: TransitionCoordinator,
    gateway: HttpInstitutionGateway,
    institution,
    db_session: AsyncSession,
) -> None:
    a = await add_section(db_session, institution.id, "A")
    year = (await coordinator.create(draft("2024/2025", YearStatus.ACTIVE, [a.id]))).year
    await coordinator.archive(year.id)

    outcome = await coordinator.reactivate(year.id)

    assert outcome.year.status == "planned"
    assert [y.label for y in outcome.registry.planned()] == ["2024/2025"]
    classes = await gateway.list_classes(institution.id, academic_year="2024/2025")
    assert [c.status for c in classes] == ["archived"]
    assert all(a.status == "planned" for a in outcome.year.section_activations)


async def test_reactivate_requires_archived_year(coordinator: TransitionCoordinator) -> None:
    year = (await coordinator.create(draft("2024/2025", YearStatus.ACTIVE))).year
    with pytest.raises(ValidationError):
        await coordinator.reactivate(year.id)


class FailingArchiveGateway(HttpInstitutionGateway):
    async def archive(self, institution_id, year_id):
        raise ServiceError("Internal Server Error", status_code=500)


async def test_archive_failure_is_a_cascade_failure(client, institution) -> None:
    coordinator = TransitionCoordinator(FailingArchiveGateway(client), institution.id)
    year = (await coordinator.create(draft("2024/2025", YearStatus.ACTIVE))).year
    version = coordinator.registry.version

    with pytest.raises(CascadeFailure) as exc:
        await coordinator.archive(year.id)

    assert exc.value.cause.status_code == 500
    assert coordinator.registry.version == version
    assert coordinator.registry.current().id == year.id


async def test_update_replaces_section_set(
    coordinator: TransitionCoordinator,
    institution,
    db_session: AsyncSession,
) -> None:
    a = await add_section(db_session, institution.id, "A")
    b = await add_section(db_session, institution.id, "B")
    year = (await coordinator.create(draft("2025/2026", sections=[a.id]))).year
    selection = SelectionReconciler(year.section_ids)
    selection.replace([b.id])

    outcome = await coordinator.update(year.id, AcademicYearUpdate(description="Second term split"), selection)

    assert outcome.year.section_ids == [b.id]
    assert outcome.year.description == "Second term split"
    assert not selection.delta()


async def test_update_rejects_label_of_another_year(coordinator: TransitionCoordinator) -> None:
    await coordinator.create(draft("2024/2025"))
    year = (await coordinator.create(draft("2025/2026"))).year
    with pytest.raises(ConflictError):
        await coordinator.update(year.id, AcademicYearUpdate(label="2024/2025"))
    with pytest.raises(ValidationError):
        await coordinator.update(year.id, AcademicYearUpdate(end_date=date(2025, 8, 1)))


async def test_create_with_allocator_only_activates_the_new_sections(
    coordinator: TransitionCoordinator,
    institution,
    db_session: AsyncSession,
) -> None:
    a = await add_section(db_session, institution.id, "A")
    await coordinator.refresh()
    allocator = coordinator.allocator()
    allocator.create_pending("B")

    outcome = await coordinator.create(draft("2025/2026", sections=[a.id]), allocator=allocator)

    assert [s.section_name for s in outcome.year.section_activations] == ["A", "B"]
    assert outcome.classes_created == 2
    assert outcome.failure is None


async def test_create_when_every_pending_section_is_dropped(
    coordinator: TransitionCoordinator,
    institution,
    db_session: AsyncSession,
) -> None:
    allocator = coordinator.allocator()
    allocator.create_pending("C")
    await add_section(db_session, institution.id, "C")

    outcome = await coordinator.create(draft("2025/2026", create_classes=True), allocator=allocator)

    assert outcome.dropped_sections == ["C"]
    assert outcome.year.section_activations == []
    assert outcome.classes_created == 0


async def test_create_classes_needs_a_section(coordinator: TransitionCoordinator) -> None:
    version = coordinator.registry.version
    with pytest.raises(ValidationError):
        await coordinator.create(draft("2025/2026", create_classes=True))
    assert coordinator.registry.version == version


async def test_update_with_allocator_only_adds_the_new_sections(
    coordinator: TransitionCoordinator,
    institution,
    db_session: AsyncSession,
) -> None:
    a = await add_section(db_session, institution.id, "A")
    year = (await coordinator.create(draft("2025/2026", sections=[a.id]))).year
    allocator = coordinator.allocator()
    allocator.create_pending("B")

    outcome = await coordinator.update(year.id, AcademicYearUpdate(), allocator=allocator)

    assert [s.section_name for s in outcome.year.section_activations] == ["A", "B"]


async def test_stale_snapshot_is_reloaded_on_not_found(
    coordinator: TransitionCoordinator,
    db_session: AsyncSession,
) -> None:
    year = (await coordinator.create(draft("2025/2026"))).year
    version = coordinator.registry.version
    # another session removes the year
    await db_session.execute(delete(AcademicYear).where(AcademicYear.id == year.id))
    await db_session.commit()

    with pytest.raises(NotFoundError):
        await coordinator.activate(year.id)

    assert coordinator.registry.version == version + 1
    assert len(coordinator.registry) == 0
    assert not coordinator.registry.has_label("2025/2026")
