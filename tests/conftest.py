from datetime import date
from typing import AsyncGenerator, Optional
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from academic_cycle.core.models import Institution, Section, Student, Teacher
from academic_cycle.db.session import Base, get_db
from academic_cycle.lifecycle.coordinator import TransitionCoordinator
from academic_cycle.lifecycle.gateway import HttpInstitutionGateway
from academic_cycle.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the FastAPI dependency uses the same session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def gateway(client: AsyncClient) -> HttpInstitutionGateway:
    return HttpInstitutionGateway(client)


@pytest.fixture()
async def institution(db_session: AsyncSession) -> Institution:
    obj = Institution(name="Scuola Media Dante", school_type="middle_school", default_max_students=25)
    db_session.add(obj)
    await db_session.commit()
    await db_session.refresh(obj)
    return obj


@pytest.fixture()
async def coordinator(gateway: HttpInstitutionGateway, institution: Institution) -> TransitionCoordinator:
    c = TransitionCoordinator(gateway, institution.id)
    await c.refresh()
    return c


async def add_section(db: AsyncSession, institution_id: UUID, name: str, max_students: int = 25) -> Section:
    obj = Section(institution_id=institution_id, name=name, max_students=max_students, is_active=True)
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


async def add_teacher(db: AsyncSession, institution_id: UUID, email: str) -> Teacher:
    obj = Teacher(institution_id=institution_id, first_name="Anna", last_name="Rossi", email=email)
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


async def add_student(db: AsyncSession, institution_id: UUID, class_id: Optional[UUID], first_name: str) -> Student:
    obj = Student(institution_id=institution_id, class_id=class_id, first_name=first_name, last_name="Bianchi")
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


def year_payload(label: str, status: str = "planned", sections=(), create_classes: Optional[bool] = None) -> dict:
    first, second = (int(part) for part in label.split("/"))
    return {
        "label": label,
        "start_date": date(first, 9, 1).isoformat(),
        "end_date": date(second, 6, 30).isoformat(),
        "status": status,
        "create_classes": bool(sections) if create_classes is None else create_classes,
        "selected_sections": [str(s) for s in sections],
    }

