from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.api.v1.sections.schemas import SectionCreate, SectionResponse
from academic_cycle.core.exceptions import (
    ConflictError,
    DuplicateSectionName,
    InvalidSectionName,
    NotFoundError,
    PartialBatchFailure,
    ServiceError,
    ValidationError,
)
from academic_cycle.core.models import Section
from academic_cycle.lifecycle.allocator import SectionAllocator
from academic_cycle.lifecycle.gateway import HttpInstitutionGateway

from conftest import add_section


class RecordingGateway:
    """Creates sections in memory; names listed in failures raise the given error instead."""

    def __init__(self, failures=None) -> None:
        self.failures = failures or {}
        self.created = []

    async def create_section(self, institution_id: UUID, payload: SectionCreate) -> SectionResponse:
        if payload.name in self.failures:
            raise self.failures[payload.name]
        section = SectionResponse(
            id=uuid4(),
            institution_id=institution_id,
            name=payload.name,
            max_students=payload.max_students,
            is_active=payload.is_active,
            created_at=datetime.now(timezone.utc),
        )
        self.created.append(section)
        return section


def make_allocator(gateway=None, existing=("A",), school_type="middle_school") -> SectionAllocator:
    return SectionAllocator(gateway or RecordingGateway(), uuid4(), existing, school_type=school_type)


def test_create_pending_reserves_letter_locally() -> None:
    gateway = RecordingGateway()
    allocator = make_allocator(gateway)
    pending = allocator.create_pending("B")
    assert pending.temp_id == "temp-B"
    assert pending.max_students == 25
    assert "B" not in allocator.unused_letters()
    assert allocator.unused_letters()[0] == "C"
    assert gateway.created == []


def test_create_pending_rejects_taken_or_invalid_letters() -> None:
    allocator = make_allocator()
    allocator.create_pending("B")
    with pytest.raises(DuplicateSectionName):
        allocator.create_pending("A")
    with pytest.raises(DuplicateSectionName):
        allocator.create_pending("B")
    with pytest.raises(InvalidSectionName):
        allocator.create_pending("bb")
    with pytest.raises(ValidationError):
        allocator.create_pending("C", max_students=31)


def test_release_pending_returns_letter() -> None:
    allocator = make_allocator()
    allocator.create_pending("B")
    allocator.create_pending("C")
    allocator.release_pending("temp-B")
    assert "B" in allocator.unused_letters()
    with pytest.raises(NotFoundError):
        allocator.release_pending("temp-B")
    allocator.release_all()
    assert allocator.pending() == []
    assert allocator.unused_letters() == [letter for letter in "BCDEFGHIJKLMNOPQRSTUVWXYZ"]


async def test_commit_pending_is_best_effort() -> None:
    gateway = RecordingGateway(
        failures={
            "C": ConflictError("Section C already exists"),
            "D": ServiceError("boom", status_code=500),
        }
    )
    allocator = make_allocator(gateway)
    for letter in "BCDE":
        allocator.create_pending(letter)

    result = await allocator.commit_pending()

    assert set(result.created) == {"temp-B", "temp-E"}
    assert set(result.failed) == {"temp-C", "temp-D"}
    assert [s.name for s in gateway.created] == ["B", "E"]
    failure = result.failure
    assert isinstance(failure, PartialBatchFailure)
    assert failure.failed_names == ["C", "D"]
    assert failure.status_code == 207
    # C is taken by someone else now; D failed for another reason and is free again
    assert allocator.existing_names == ["A", "B", "C", "E"]
    assert "D" in allocator.unused_letters()
    assert allocator.pending() == []


async def test_commit_pending_without_failures() -> None:
    allocator = make_allocator()
    allocator.create_pending("B")
    result = await allocator.commit_pending()
    assert result.failure is None
    assert list(result.created) == ["temp-B"]


async def test_create_section_persists_through_service(
    gateway: HttpInstitutionGateway,
    institution,
    db_session: AsyncSession,
) -> None:
    await add_section(db_session, institution.id, "A")
    allocator = SectionAllocator(gateway, institution.id, ["A"], school_type=institution.school_type)

    section = await allocator.create_section("B", max_students=28)

    assert section.name == "B"
    assert section.max_students == 28
    assert "B" not in allocator.unused_letters()
    r = await db_session.execute(select(Section.name).where(Section.institution_id == institution.id))
    assert sorted(r.scalars().all()) == ["A", "B"]


async def test_commit_pending_against_service_reports_collision(
    gateway: HttpInstitutionGateway,
    institution,
    db_session: AsyncSession,
) -> None:
    await add_section(db_session, institution.id, "A")
    allocator = SectionAllocator(gateway, institution.id, ["A"], school_type=institution.school_type)
    allocator.create_pending("B")
    allocator.create_pending("C")
    # another session takes C before this one commits
    await add_section(db_session, institution.id, "C")

    result = await allocator.commit_pending()

    assert list(result.created) == ["temp-B"]
    assert isinstance(result.failed["temp-C"], ConflictError)
    assert result.failure.failed_names == ["C"]
