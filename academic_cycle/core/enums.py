from enum import Enum


class YearStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    ARCHIVED = "archived"


class SchoolType(str, Enum):
    MIDDLE_SCHOOL = "middle_school"
    HIGH_SCHOOL = "high_school"


class ClassStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    # Waiting for a new class after their section was deactivated.
    PENDING = "pending"
