"""In-memory view of one institution's academic years, partitioned by status.

Also holds the "YYYY/YYYY" label rules shared by the core and the institution service.
"""

import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from academic_cycle.api.v1.academic_years.schemas import AcademicYearResponse
from academic_cycle.core.enums import YearStatus
from academic_cycle.core.exceptions import ConflictError, NotFoundError, ValidationError
from academic_cycle.core.logging import get_logger

logger = get_logger(__name__)

LABEL_PATTERN = re.compile(r"^(\d{4})/(\d{4})$")

# Years roll over on September 1.
ROLLOVER_MONTH = 9


def parse_label(label: Optional[str]) -> Tuple[int, int]:
    """Split "2025/2026" into (2025, 2026).

    Raises:
        ValidationError: label is not "YYYY/YYYY" with consecutive years.
    """
    match = LABEL_PATTERN.match(label or "")
    if not match:
        raise ValidationError(f"Academic year must be in the format YYYY/YYYY, got {label!r}")
    first, second = int(match.group(1)), int(match.group(2))
    if second != first + 1:
        raise ValidationError(f"Academic year {label} must span two consecutive years")
    return first, second


def validate_label(label: Optional[str]) -> str:
    parse_label(label)
    return label


def next_label(label: str) -> str:
    first, second = parse_label(label)
    return f"{first + 1}/{second + 1}"


def calendar_label(today: date) -> str:
    if today.month >= ROLLOVER_MONTH:
        return f"{today.year}/{today.year + 1}"
    return f"{today.year - 1}/{today.year}"


def default_dates(label: str) -> Tuple[date, date]:
    """September 1 of the first year to June 30 of the second."""
    first, second = parse_label(label)
    return date(first, 9, 1), date(second, 6, 30)


def validate_dates(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date")


def suggest_next_label(current, today: Optional[date] = None) -> str:
    """Label to pre-fill when creating a year.

    current is the active year (or its label, or None). When the active year already is the
    calendar year, suggest the one after it, since a duplicate label would be rejected.
    """
    today = today or date.today()
    suggested = calendar_label(today)
    current_label = getattr(current, "label", current)
    if current_label and current_label == suggested:
        return next_label(suggested)
    return suggested


def _by_label_desc(years: Iterable[AcademicYearResponse]) -> List[AcademicYearResponse]:
    return sorted(years, key=lambda y: y.label, reverse=True)


class YearRegistry:
    """
    Snapshot of all academic years of one institution.

    load() is the only mutator: it replaces the whole snapshot, so a failed transition simply
    never calls it and the previous snapshot stays in place.
    """

    def __init__(self, years: Iterable[AcademicYearResponse] = ()) -> None:
        self._by_id: Dict[UUID, AcademicYearResponse] = {}
        self._current: Optional[AcademicYearResponse] = None
        self._planned: List[AcademicYearResponse] = []
        self._archived: List[AcademicYearResponse] = []
        self.version = 0
        if years:
            self.load(years)

    def load(self, years: Iterable[AcademicYearResponse]) -> "YearRegistry":
        """Replace the snapshot.

        Raises:
            ConflictError: the snapshot holds more than one active year (previous snapshot kept).
        """
        years = list(years)
        active = [y for y in years if y.status == YearStatus.ACTIVE.value]
        if len(active) > 1:
            labels = ", ".join(sorted(y.label for y in active))
            raise ConflictError(f"More than one active academic year: {labels}")

        self._by_id = {y.id: y for y in years}
        self._current = active[0] if active else None
        self._planned = _by_label_desc(y for y in years if y.status == YearStatus.PLANNED.value)
        self._archived = _by_label_desc(y for y in years if y.status == YearStatus.ARCHIVED.value)
        self.version += 1
        logger.debug(
            "year_registry_loaded",
            version=self.version,
            current=self._current.label if self._current else None,
            planned=len(self._planned),
            archived=len(self._archived),
        )
        return self

    def current(self) -> Optional[AcademicYearResponse]:
        return self._current

    def planned(self) -> List[AcademicYearResponse]:
        return list(self._planned)

    def archived(self) -> List[AcademicYearResponse]:
        return list(self._archived)

    def all(self) -> List[AcademicYearResponse]:
        return _by_label_desc(self._by_id.values())

    def get(self, year_id: UUID) -> AcademicYearResponse:
        year = self._by_id.get(year_id)
        if year is None:
            raise NotFoundError(f"Academic year {year_id} not found")
        return year

    def find_by_label(self, label: str) -> Optional[AcademicYearResponse]:
        for year in self._by_id.values():
            if year.label == label:
                return year
        return None

    def has_label(self, label: str) -> bool:
        return self.find_by_label(label) is not None

    def suggest_next_label(self, today: Optional[date] = None) -> str:
        return suggest_next_label(self._current, today)

    def __len__(self) -> int:
        return len(self._by_id)
