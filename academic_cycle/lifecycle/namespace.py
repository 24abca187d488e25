"""Section namespace: the A..Z letters an institution can name its sections with.

Existing (persisted) and pending names share one namespace; everything here is pure.
"""

import re
import string
from typing import Iterable, List, Optional, Tuple

from academic_cycle.core.enums import SchoolType
from academic_cycle.core.exceptions import DuplicateSectionName, InvalidSectionName, ValidationError

SECTION_LETTERS: Tuple[str, ...] = tuple(string.ascii_uppercase)

SECTION_NAME_PATTERN = re.compile(r"^[A-Z]$")

MIN_STUDENTS_PER_SECTION = 15
MAX_STUDENTS_MIDDLE_SCHOOL = 30
MAX_STUDENTS_DEFAULT = 35


def _normalized(names: Iterable[str]) -> set:
    return {n.strip().upper() for n in names if n}


def unused_letters(existing_names: Iterable[str]) -> List[str]:
    """Letters of A..Z not in existing_names, alphabetically ordered."""
    taken = _normalized(existing_names)
    return [letter for letter in SECTION_LETTERS if letter not in taken]


def validate_name(name: Optional[str], existing_names: Iterable[str] = ()) -> str:
    """Return name if it is a free single uppercase letter.

    Raises:
        InvalidSectionName: name is not a single uppercase letter A..Z.
        DuplicateSectionName: name is already taken (existing or pending).
    """
    if not name or not SECTION_NAME_PATTERN.match(name):
        raise InvalidSectionName(f"Section name must be a single uppercase letter (A-Z), got {name!r}")
    if name in _normalized(existing_names):
        raise DuplicateSectionName(f"Section {name} already exists")
    return name


def max_students_bounds(school_type: Optional[str]) -> Tuple[int, int]:
    upper = MAX_STUDENTS_MIDDLE_SCHOOL if school_type == SchoolType.MIDDLE_SCHOOL.value else MAX_STUDENTS_DEFAULT
    return MIN_STUDENTS_PER_SECTION, upper


def validate_max_students(value: Optional[int], school_type: Optional[str]) -> int:
    lower, upper = max_students_bounds(school_type)
    if value is None or not lower <= value <= upper:
        raise ValidationError(f"max_students must be between {lower} and {upper}, got {value}")
    return value
