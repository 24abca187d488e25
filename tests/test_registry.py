"""Year registry snapshot and label helpers."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from academic_cycle.api.v1.academic_years.schemas import AcademicYearResponse
from academic_cycle.core.exceptions import ConflictError, NotFoundError, ValidationError
from academic_cycle.lifecycle.registry import (
    YearRegistry,
    calendar_label,
    default_dates,
    next_label,
    parse_label,
    suggest_next_label,
    validate_dates,
)

INSTITUTION_ID = uuid4()


def make_year(label: str, status: str) -> AcademicYearResponse:
    first, second = parse_label(label)
    return AcademicYearResponse(
        id=uuid4(),
        institution_id=INSTITUTION_ID,
        label=label,
        start_date=date(first, 9, 1),
        end_date=date(second, 6, 30),
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def test_suggest_next_label_examples() -> None:
    assert suggest_next_label(None, date(2025, 3, 1)) == "2024/2025"
    assert suggest_next_label(None, date(2025, 10, 1)) == "2025/2026"
    assert suggest_next_label(make_year("2025/2026", "active"), date(2025, 10, 1)) == "2026/2027"


def test_suggest_next_label_rolls_over_on_september_first() -> None:
    assert suggest_next_label(None, date(2025, 8, 31)) == "2024/2025"
    assert suggest_next_label(None, date(2025, 9, 1)) == "2025/2026"
    # an older active year does not push the suggestion further
    assert suggest_next_label("2024/2025", date(2025, 10, 1)) == "2025/2026"


@pytest.mark.parametrize("label", ["2025-2026", "2025/2027", "25/26", "", None, "2026/2025"])
def test_parse_label_rejects_malformed(label) -> None:
    with pytest.raises(ValidationError):
        parse_label(label)


def test_label_helpers() -> None:
    assert next_label("2025/2026") == "2026/2027"
    assert calendar_label(date(2026, 1, 15)) == "2025/2026"
    assert default_dates("2025/2026") == (date(2025, 9, 1), date(2026, 6, 30))


def test_validate_dates() -> None:
    validate_dates(date(2025, 9, 1), date(2026, 6, 30))
    with pytest.raises(ValidationError):
        validate_dates(date(2025, 9, 1), date(2025, 9, 1))
    with pytest.raises(ValidationError):
        validate_dates(None, date(2026, 6, 30))


def test_load_partitions_by_status() -> None:
    years = [
        make_year("2023/2024", "archived"),
        make_year("2024/2025", "active"),
        make_year("2025/2026", "planned"),
        make_year("2022/2023", "archived"),
        make_year("2026/2027", "planned"),
    ]
    registry = YearRegistry(years)
    assert registry.current().label == "2024/2025"
    assert [y.label for y in registry.planned()] == ["2026/2027", "2025/2026"]
    assert [y.label for y in registry.archived()] == ["2023/2024", "2022/2023"]
    assert len(registry) == 5
    assert registry.has_label("2022/2023")
    assert registry.find_by_label("2030/2031") is None
    assert registry.get(years[0].id) is years[0]


def test_load_rejects_two_active_years_and_keeps_snapshot() -> None:
    registry = YearRegistry([make_year("2024/2025", "active")])
    version = registry.version
    with pytest.raises(ConflictError):
        registry.load([make_year("2024/2025", "active"), make_year("2025/2026", "active")])
    assert registry.current().label == "2024/2025"
    assert registry.version == version


def test_empty_registry() -> None:
    registry = YearRegistry()
    assert registry.current() is None
    assert registry.planned() == []
    assert registry.suggest_next_label(date(2025, 10, 1)) == "2025/2026"
    with pytest.raises(NotFoundError):
        registry.get(uuid4())
