import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import relationship

from academic_cycle.db.session import Base
from academic_cycle.core.models.institution import _utcnow


class AcademicYear(Base):
    """
    Academic year per institution, labelled "YYYY/YYYY".
    Only one per institution can have status = active; the partial unique index makes the
    database reject a second one even when two requests pass the in-service check together.
    """

    __tablename__ = "academic_years"
    __table_args__ = (
        UniqueConstraint("institution_id", "label", name="uq_academic_year_institution_label"),
        Index(
            "uq_academic_year_one_active",
            "institution_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    institution_id = Column(Uuid, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False)
    label = Column(String(9), nullable=False)  # e.g. "2025/2026"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="planned")  # planned | active | archived
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    institution = relationship("Institution", backref="academic_years")
