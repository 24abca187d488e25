"""Section allocation: persisted sections right away, or pending ones reserved for an editing session.

Pending sections never reach the institution service until commit_pending(); until then
their letters are reserved only inside this allocator, so other sessions cannot see them.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from academic_cycle.api.v1.institutions.schemas import InstitutionResponse
from academic_cycle.api.v1.sections.schemas import SectionCreate, SectionResponse
from academic_cycle.core.exceptions import ConflictError, NotFoundError, PartialBatchFailure, ServiceError
from academic_cycle.core.logging import get_logger
from academic_cycle.lifecycle.namespace import unused_letters, validate_max_students, validate_name

logger = get_logger(__name__)

TEMP_ID_PREFIX = "temp-"


def temp_id_for(letter: str) -> str:
    return f"{TEMP_ID_PREFIX}{letter}"


def is_temp_id(section_id: object) -> bool:
    return isinstance(section_id, str) and section_id.startswith(TEMP_ID_PREFIX)


@dataclass
class PendingSection:
    temp_id: str
    name: str
    max_students: int
    is_active: bool = True


@dataclass
class CommitResult:
    """Per pending section, either the real id it was created as or the error that stopped it."""

    created: Dict[str, UUID] = field(default_factory=dict)
    failed: Dict[str, ServiceError] = field(default_factory=dict)
    names: Dict[str, str] = field(default_factory=dict)

    @property
    def failure(self) -> Optional[PartialBatchFailure]:
        if not self.failed:
            return None
        return PartialBatchFailure(self.failed, self.names)

    def __bool__(self) -> bool:
        return bool(self.created or self.failed)


class SectionAllocator:
    def __init__(
        self,
        gateway,
        institution_id: UUID,
        existing_names: Iterable[str] = (),
        school_type: Optional[str] = None,
        default_max_students: int = 25,
    ) -> None:
        self.gateway = gateway
        self.institution_id = institution_id
        self.school_type = school_type
        self.default_max_students = default_max_students
        self._existing = set(existing_names)
        self._pending: Dict[str, PendingSection] = {}

    @classmethod
    def from_institution(cls, gateway, institution: InstitutionResponse) -> "SectionAllocator":
        return cls(
            gateway,
            institution.id,
            existing_names=[s.name for s in institution.sections],
            school_type=institution.school_type,
            default_max_students=institution.default_max_students,
        )

    def _taken(self) -> List[str]:
        return [*self._existing, *(p.name for p in self._pending.values())]

    @property
    def existing_names(self) -> List[str]:
        return sorted(self._existing)

    def unused_letters(self) -> List[str]:
        """Letters free in the shared namespace: neither persisted nor pending here."""
        return unused_letters(self._taken())

    def pending(self) -> List[PendingSection]:
        return sorted(self._pending.values(), key=lambda p: p.name)

    def create_pending(
        self,
        letter: str,
        max_students: Optional[int] = None,
        is_active: bool = True,
    ) -> PendingSection:
        """Reserve letter for this session. No request is sent.

        Raises:
            InvalidSectionName / DuplicateSectionName: letter is malformed or already taken.
            ValidationError: max_students outside the school type bounds.
        """
        name = validate_name(letter, self._taken())
        if max_students is None:
            max_students = self.default_max_students
        validate_max_students(max_students, self.school_type)
        pending = PendingSection(temp_id=temp_id_for(name), name=name, max_students=max_students, is_active=is_active)
        self._pending[pending.temp_id] = pending
        logger.debug("section_pending", temp_id=pending.temp_id)
        return pending

    def release_pending(self, temp_id: str) -> PendingSection:
        """Drop a pending section and return its letter to the unused pool."""
        pending = self._pending.pop(temp_id, None)
        if pending is None:
            raise NotFoundError(f"Pending section {temp_id} not found")
        logger.debug("section_pending_released", temp_id=temp_id)
        return pending

    def release_all(self) -> List[PendingSection]:
        """Cancel the session: every pending letter goes back to the pool."""
        released = self.pending()
        self._pending.clear()
        return released

    async def commit_pending(self, pending: Optional[Iterable[PendingSection]] = None) -> CommitResult:
        """
        Create each pending section with its own request. One failure does not stop the others
        and nothing already created is rolled back.

        Created names join the persisted namespace. A name that collided is taken by someone
        else, so it joins it as well; any other failure just frees the letter.
        """
        batch = list(pending) if pending is not None else self.pending()
        result = CommitResult()
        for item in batch:
            self._pending.pop(item.temp_id, None)
            result.names[item.temp_id] = item.name
            payload = SectionCreate(name=item.name, max_students=item.max_students, is_active=item.is_active)
            try:
                section = await self.gateway.create_section(self.institution_id, payload)
            except ConflictError as e:
                self._existing.add(item.name)
                result.failed[item.temp_id] = e
                continue
            except ServiceError as e:
                result.failed[item.temp_id] = e
                continue
            self._existing.add(section.name)
            result.created[item.temp_id] = section.id

        if result.failed:
            logger.warning(
                "pending_sections_partially_committed",
                institution_id=str(self.institution_id),
                created=len(result.created),
                failed=sorted(result.names[t] for t in result.failed),
            )
        else:
            logger.info("pending_sections_committed", institution_id=str(self.institution_id), created=len(result.created))
        return result

    async def create_section(
        self,
        name: str,
        max_students: Optional[int] = None,
        is_active: bool = True,
    ) -> SectionResponse:
        """Create and persist a section immediately, outside any editing session."""
        name = validate_name(name, self._taken())
        if max_students is None:
            max_students = self.default_max_students
        validate_max_students(max_students, self.school_type)
        section = await self.gateway.create_section(
            self.institution_id,
            SectionCreate(name=name, max_students=max_students, is_active=is_active),
        )
        self._existing.add(section.name)
        return section
