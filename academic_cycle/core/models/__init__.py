from academic_cycle.core.models.institution import Institution
from academic_cycle.core.models.academic_year import AcademicYear
from academic_cycle.core.models.section_model import Section, SectionYearActivation
from academic_cycle.core.models.class_model import SchoolClass, class_co_teachers
from academic_cycle.core.models.staff import Teacher, teacher_class_links, teacher_student_links
from academic_cycle.core.models.student import Student

__all__ = [
    "AcademicYear",
    "Institution",
    "SchoolClass",
    "Section",
    "SectionYearActivation",
    "Student",
    "Teacher",
    "class_co_teachers",
    "teacher_class_links",
    "teacher_student_links",
]
