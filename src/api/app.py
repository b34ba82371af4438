"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, the uploaded-audio static mount and the health endpoint. The
module-level ``app`` instance allows ``uvicorn src.api.app:app --reload``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from src.api.middleware.error_handler import register_error_handlers
from src.api.routes import exercises, interviews, personas, projects
from src.core.config import get_settings
from src.core.models import HealthResponse
from src.services.storage.database import close_db, init_db


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    Startup: configure logging, create the uploads directory and the
    SQLite tables. Shutdown: dispose the DB engine.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    Path(settings.uploads_dir).mkdir(parents=True, exist_ok=True)
    await init_db()
    yield
    await close_db()


def create_app() -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Returns:
        FastAPI: The configured application, ready for ``uvicorn``.
    """

    settings = get_settings()
    app = FastAPI(
        title="FieldNotes",
        description="UX research projects, personas, exercises and recorded "
        "interviews with timestamped notes.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(projects.router, prefix="/api/v1")
    app.include_router(personas.router, prefix="/api/v1")
    app.include_router(exercises.router, prefix="/api/v1")
    app.include_router(interviews.router, prefix="/api/v1")

    # -- Stored interview audio, playable by URL --
    app.mount(
        settings.uploads_url_prefix,
        StaticFiles(directory=settings.uploads_dir, check_dir=False),
        name="uploads",
    )

    return app


app = create_app()


def main() -> None:
    """Run the API server with host and port from settings."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("src.api.app:app", host=settings.app_host, port=settings.app_port)
