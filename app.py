"""
app.py — builds the coordination API.

`create_app()` wires one DataRepository into the four services, registers the
schedule and coordination routers, and prepares the SQLite schema (plus the
demo room when COORD_SEED_DEMO_DATA is on) during the lifespan startup.

Launch through `python main.py`, or point uvicorn at `app:app`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.coordination_controller import router as coordination_router
from backend.controllers.schedule_controller import router as schedule_router
from backend.repository.data_repository import DataRepository
from backend.services.conflict_service import ScheduleCombinationService
from backend.services.recommendation_service import TimeRecommendationService
from backend.services.request_service import RequestCoordinationService
from backend.services.travel_service import TravelSchedulingService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Wire the coordination services onto a new FastAPI app.

    Tests pass their own Settings (usually a tmp_path database); services are
    published on app.state for the controller dependency getters.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # --- Repository (SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    combination_service = ScheduleCombinationService(settings=settings)
    recommendation_service = TimeRecommendationService(
        repository=repository,
        settings=settings,
    )
    travel_service = TravelSchedulingService(
        repository=repository,
        settings=settings,
    )
    request_service = RequestCoordinationService(
        repository=repository,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(schedule_router)
    app.include_router(coordination_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.combination_service = combination_service
    app.state.recommendation_service = recommendation_service
    app.state.travel_service = travel_service
    app.state.request_service = request_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Create tables, then seed the demo room into an empty database.

    Both steps are no-ops on a database that already has them.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo room (skipped if Rooms table not empty)")
        repository.seed_demo_data_if_empty()

    logger.info("Startup complete | database=%s", repository.database_path)


# Module-level app object for uvicorn
app = create_app()
