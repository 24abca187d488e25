from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_cycle.core.exceptions import NotFoundError
from academic_cycle.core.models import Institution


async def get_institution_or_raise(db: AsyncSession, institution_id: UUID) -> Institution:
    """Institution by id, or NotFoundError. Every institution-scoped service starts here."""
    result = await db.execute(select(Institution).where(Institution.id == institution_id))
    institution = result.scalar_one_or_none()
    if not institution:
        raise NotFoundError("Institution not found")
    return institution
