"""FastAPI application factory.

Main entry point for the Accreda Web API.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from accreda import __version__
from accreda.config.app_config import load_app_config
from accreda.db.database import init_db
from accreda.web.errors import register_exception_handlers
from accreda.web.routes import (
    auth_router,
    connections_router,
    dashboard_router,
    experiences_router,
    export_router,
    health_router,
    notifications_router,
    reviews_router,
    route_guard_router,
    saos_router,
    settings_router,
    skills_router,
)
from accreda.web.services import reset_service_registry

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    db_path = Path(config.paths["db_path"])
    init_db(db_path)
    logger.info(
        "api_startup",
        db_path=str(db_path.absolute()),
        functions_url=config.backend.functions_url,
    )
    yield
    reset_service_registry()
    logger.info("api_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Accreda API",
        description="EIT progress, supervisor connections and CSAW export",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(route_guard_router)
    app.include_router(dashboard_router)
    app.include_router(skills_router)
    app.include_router(notifications_router)
    app.include_router(connections_router)
    app.include_router(settings_router)
    app.include_router(saos_router)
    app.include_router(experiences_router)
    app.include_router(reviews_router)
    app.include_router(export_router)

    return app


# Default app instance for uvicorn
app = create_app()
