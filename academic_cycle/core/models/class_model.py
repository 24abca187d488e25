"""Classes derived from activating a section for an academic year. Model named SchoolClass to avoid Python 'class' keyword."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from academic_cycle.db.session import Base
from academic_cycle.core.models.institution import _utcnow

class_co_teachers = Table(
    "class_co_teachers",
    Base.metadata,
    Column("class_id", Uuid, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    Column("teacher_id", Uuid, ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
)


class SchoolClass(Base):
    """Grade + section for one academic year (e.g. 1A 2025/2026). Archived together with its year."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("institution_id", "year", "section", "academic_year_label", name="uq_class_grade_section_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False)
    academic_year_label = Column(String(9), nullable=False)
    year = Column(Integer, nullable=False, default=1)  # grade, 1..3 middle school, 1..5 high school
    section = Column(String(1), nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="active")  # active | archived
    is_active = Column(Boolean, nullable=False, default=True)
    main_teacher_id = Column(Uuid, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    academic_year = relationship("AcademicYear", backref="classes")
    main_teacher = relationship("Teacher", foreign_keys=[main_teacher_id])
    co_teachers = relationship("Teacher", secondary=class_co_teachers)
