from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academic_cycle.api.v1.academic_years.router import router as academic_years_router
from academic_cycle.api.v1.classes.classes_router import router as classes_router
from academic_cycle.api.v1.institutions.router import router as institutions_router
from academic_cycle.api.v1.sections.sections_router import router as sections_router
from academic_cycle.core.config import settings
from academic_cycle.core.logging import get_logger, setup_logging
from academic_cycle.db.session import create_all

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings)
    if settings.debug:
        # Local runs without migrations: create tables on startup.
        await create_all()
    logger.info("app_started", debug=settings.debug)
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Academic Cycle", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(institutions_router)
    app.include_router(sections_router)
    app.include_router(academic_years_router)
    app.include_router(classes_router)

    return app


app = create_app()
