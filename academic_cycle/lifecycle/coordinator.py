"""Lifecycle transitions of one institution's academic years.

    create      -> planned | active
    activate    planned  -> active
    archive     active   -> archived  (class/teacher/student cascade, next planned year activated)
    reactivate  archived -> planned   (nothing restored)

Each transition checks its precondition against the registry snapshot, sends one request to
the institution service, and reloads the registry only once that request succeeded. The
service enforces the same preconditions again; the snapshot may be stale.
"""

from dataclasses import dataclass
from typing import Awaitable, List, Optional, TypeVar
from uuid import UUID

from academic_cycle.api.v1.academic_years.schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    AcademicYearUpdate,
)
from academic_cycle.api.v1.institutions.schemas import InstitutionResponse
from academic_cycle.core.enums import YearStatus
from academic_cycle.core.exceptions import (
    CascadeFailure,
    ConflictError,
    NotFoundError,
    PartialBatchFailure,
    ServiceError,
    ValidationError,
)
from academic_cycle.core.logging import get_logger
from academic_cycle.lifecycle.allocator import CommitResult, SectionAllocator, is_temp_id
from academic_cycle.lifecycle.registry import YearRegistry, validate_dates, validate_label
from academic_cycle.lifecycle.selection import SelectionReconciler

logger = get_logger(__name__)

T = TypeVar("T")

# Errors the caller can act on directly; anything else from archive/reactivate is a cascade failure.
_TYPED_ERRORS = (ValidationError, ConflictError, NotFoundError)


@dataclass
class TransitionOutcome:
    year: AcademicYearResponse
    registry: YearRegistry
    failure: Optional[PartialBatchFailure] = None
    classes_created: int = 0
    activated_year: Optional[AcademicYearResponse] = None

    @property
    def dropped_sections(self) -> List[str]:
        return self.failure.failed_names if self.failure else []


class TransitionCoordinator:
    def __init__(self, gateway, institution_id: UUID, registry: Optional[YearRegistry] = None) -> None:
        self.gateway = gateway
        self.institution_id = institution_id
        self.registry = registry if registry is not None else YearRegistry()
        self.institution: Optional[InstitutionResponse] = None
        self.logger = logger.bind(institution_id=str(institution_id))

    async def refresh(self) -> YearRegistry:
        """Reload the registry from the institution snapshot."""
        institution = await self.gateway.get_institution(self.institution_id)
        self.registry.load(institution.academic_years)
        self.institution = institution
        return self.registry

    async def _ensure_loaded(self) -> None:
        if self.institution is None:
            await self.refresh()

    def allocator(self) -> SectionAllocator:
        """Allocator over the sections of the last loaded snapshot."""
        if self.institution is None:
            raise ValidationError("Registry not loaded; call refresh() first")
        return SectionAllocator.from_institution(self.gateway, self.institution)

    async def _send(self, request: Awaitable[T]) -> T:
        try:
            return await request
        except NotFoundError:
            # Stale snapshot: reload so the next attempt sees what is really there.
            self.logger.info("registry_stale")
            await self.refresh()
            raise

    async def _send_cascade(self, request: Awaitable[T], action: str, label: str) -> T:
        try:
            return await self._send(request)
        except _TYPED_ERRORS:
            raise
        except ServiceError as e:
            self.logger.error("cascade_failed", action=action, label=label, error=e.message, status=e.status_code)
            raise CascadeFailure(f"{action.capitalize()} of academic year {label} failed: {e.message}", cause=e) from e

    async def _resolve_selection(
        self,
        selection: Optional[SelectionReconciler],
        allocator: Optional[SectionAllocator],
    ) -> CommitResult:
        """Commit pending sections and swap their temp ids in the selection for the real ones."""
        if allocator is None or not allocator.pending():
            return CommitResult()
        result = await allocator.commit_pending()
        if selection is not None:
            selection.substitute(result.created)
            selection.discard(result.failed)
        return result

    @staticmethod
    def _section_ids(selection: SelectionReconciler) -> List[UUID]:
        leftover = sorted(str(i) for i in selection.selected if is_temp_id(i))
        if leftover:
            raise ValidationError(f"Selection holds pending section(s) that were never allocated: {', '.join(leftover)}")
        return sorted(selection.selected, key=str)

    async def create(
        self,
        draft: AcademicYearCreate,
        selection: Optional[SelectionReconciler] = None,
        allocator: Optional[SectionAllocator] = None,
    ) -> TransitionOutcome:
        """
        Create a year. Pending sections of allocator are committed first; the year is then created
        with whichever of them succeeded, and outcome.failure lists the ones that were dropped.
        """
        await self._ensure_loaded()
        label = validate_label(draft.label.strip())
        validate_dates(draft.start_date, draft.end_date)
        if self.registry.has_label(label):
            raise ConflictError(f"Academic year {label} already exists for this institution")
        current = self.registry.current()
        if draft.status == YearStatus.ACTIVE and current is not None:
            raise ConflictError(f"Academic year {current.label} is already active; archive it first")

        if draft.create_classes and not (
            (selection is not None and len(selection))
            or draft.selected_sections
            or (allocator is not None and allocator.pending())
        ):
            raise ValidationError("Select at least one section to create classes for")

        result = await self._resolve_selection(selection, allocator)
        failure = result.failure
        if selection is not None:
            section_ids = self._section_ids(selection)
        else:
            section_ids = [*draft.selected_sections, *result.created.values()]
        # every requested section may have been dropped; the year is still created, without classes
        payload = draft.model_copy(
            update={
                "label": label,
                "selected_sections": section_ids,
                "create_classes": draft.create_classes and bool(section_ids),
            }
        )

        response = await self._send(self.gateway.create_academic_year(self.institution_id, payload))
        await self.refresh()
        if selection is not None:
            selection.reset(section_ids)
        self.logger.info(
            "year_created",
            label=label,
            status=response.academic_year.status,
            sections=len(section_ids),
            dropped=failure.failed_names if failure else [],
        )
        return TransitionOutcome(
            year=self.registry.get(response.academic_year.id),
            registry=self.registry,
            failure=failure,
            classes_created=response.classes_created,
        )

    async def update(
        self,
        year_id: UUID,
        changes: AcademicYearUpdate,
        selection: Optional[SelectionReconciler] = None,
        allocator: Optional[SectionAllocator] = None,
    ) -> TransitionOutcome:
        """Field update plus section-set delta. Not a status transition; allowed in any status."""
        await self._ensure_loaded()
        year = self.registry.get(year_id)
        update = {}
        if changes.label is not None:
            label = validate_label(changes.label.strip())
            if label != year.label and self.registry.has_label(label):
                raise ConflictError(f"Academic year {label} already exists for this institution")
            update["label"] = label
        validate_dates(changes.start_date or year.start_date, changes.end_date or year.end_date)

        result = await self._resolve_selection(selection, allocator)
        failure = result.failure
        if selection is not None:
            update["selected_sections"] = self._section_ids(selection)
        elif result.created:
            # no selection to carry the new sections: add them to the requested (or current) set
            base = changes.selected_sections if changes.selected_sections is not None else year.section_ids
            update["selected_sections"] = [*base, *(i for i in result.created.values() if i not in base)]
        payload = changes.model_copy(update=update)

        response = await self._send(self.gateway.update_academic_year(self.institution_id, year_id, payload))
        await self.refresh()
        if selection is not None:
            selection.reset(response.section_ids)
        self.logger.info("year_updated", label=response.label)
        return TransitionOutcome(year=self.registry.get(year_id), registry=self.registry, failure=failure)

    async def activate(self, year_id: UUID) -> TransitionOutcome:
        await self._ensure_loaded()
        year = self.registry.get(year_id)
        if year.status != YearStatus.PLANNED.value:
            raise ValidationError(f"Only planned academic years can be activated ({year.label} is {year.status})")
        current = self.registry.current()
        if current is not None and current.id != year_id:
            raise ConflictError(f"Academic year {current.label} is already active; archive it first")

        await self._send(self.gateway.activate(self.institution_id, year_id))
        await self.refresh()
        self.logger.info("year_activated", label=year.label)
        return TransitionOutcome(year=self.registry.get(year_id), registry=self.registry)

    async def archive(self, year_id: UUID) -> TransitionOutcome:
        """Archive the active year. On CascadeFailure the registry is untouched; re-invoke to retry."""
        await self._ensure_loaded()
        year = self.registry.get(year_id)
        if year.status != YearStatus.ACTIVE.value:
            raise ValidationError(f"Only the active academic year can be archived ({year.label} is {year.status})")

        response = await self._send_cascade(self.gateway.archive(self.institution_id, year_id), "archive", year.label)
        await self.refresh()
        activated = None
        if response.activated_year is not None:
            activated = self.registry.get(response.activated_year.id)
        self.logger.info(
            "year_archived",
            label=year.label,
            classes=response.classes_archived,
            students=response.students_deactivated,
            teachers=response.teachers_detached,
            activated=activated.label if activated else None,
        )
        return TransitionOutcome(year=self.registry.get(year_id), registry=self.registry, activated_year=activated)

    async def reactivate(self, year_id: UUID) -> TransitionOutcome:
        """Archived -> planned. Archived classes and deactivated students stay as they are."""
        await self._ensure_loaded()
        year = self.registry.get(year_id)
        if year.status != YearStatus.ARCHIVED.value:
            raise ValidationError(f"Only archived academic years can be reactivated ({year.label} is {year.status})")

        await self._send_cascade(self.gateway.reactivate(self.institution_id, year_id), "reactivate", year.label)
        await self.refresh()
        self.logger.info("year_reactivated", label=year.label)
        return TransitionOutcome(year=self.registry.get(year_id), registry=self.registry)
