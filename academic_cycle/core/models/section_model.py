"""Institution-scoped sections (A..Z). A section is created once and activated per academic year."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from academic_cycle.db.session import Base
from academic_cycle.core.models.institution import _utcnow


class Section(Base):
    """Single uppercase letter, unique per institution. Never deleted; is_active gates offering it at all."""

    __tablename__ = "sections"
    __table_args__ = (
        UniqueConstraint("institution_id", "name", name="uq_section_institution_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(1), nullable=False)
    max_students = Column(Integer, nullable=False, default=25)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)

    institution = relationship("Institution", backref="sections")


class SectionYearActivation(Base):
    """Activation record: the section is offered in this academic year. status follows the year's status."""

    __tablename__ = "section_year_activations"
    __table_args__ = (
        UniqueConstraint("section_id", "academic_year_id", name="uq_activation_section_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    section_id = Column(Uuid, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="planned")
    max_students = Column(Integer, nullable=True)
    activated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    section = relationship("Section", backref="year_activations")
    academic_year = relationship("AcademicYear", backref="section_activations")
