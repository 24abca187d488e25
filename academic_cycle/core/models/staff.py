"""Teacher profiles. The profile keeps its own references to the classes and students it follows."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Table, Uuid
from sqlalchemy.orm import relationship

from academic_cycle.db.session import Base
from academic_cycle.core.models.institution import _utcnow

teacher_class_links = Table(
    "teacher_class_links",
    Base.metadata,
    Column("teacher_id", Uuid, ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
    Column("class_id", Uuid, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
)

teacher_student_links = Table(
    "teacher_student_links",
    Base.metadata,
    Column("teacher_id", Uuid, ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Uuid, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
)


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    classes = relationship("SchoolClass", secondary=teacher_class_links)
    students = relationship("Student", secondary=teacher_student_links)
