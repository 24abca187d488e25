"""Institution (school) owning the section namespace and the academic years."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Uuid

from academic_cycle.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Institution(Base):
    """School type drives the section capacity ceiling (middle_school: 30, otherwise 35)."""

    __tablename__ = "institutions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    school_type = Column(String(20), nullable=False)  # middle_school | high_school
    default_max_students = Column(Integer, nullable=False, default=25)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
