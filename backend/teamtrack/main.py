"""
TeamTrack API - FastAPI Backend

Hosts the single shared workspace document (tasks + team roster) that every
TeamTrack client polls and overwrites, plus read-only derived views and
exports.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import structlog

from teamtrack.routers import data, tasks, export
from teamtrack.infrastructure.config import Settings, get_settings, get_workspace_path
from teamtrack.infrastructure.exceptions import StartupError, register_exception_handlers
from teamtrack.infrastructure.logging_setup import configure_logging
from teamtrack.infrastructure.startup import run_startup_checks
from teamtrack.services.document_service import DocumentService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("Starting TeamTrack API")
    logger.info("Configuration loaded", workspace=settings.workspace_dir)

    checker = await run_startup_checks(settings)
    if checker.failed_checks:
        logger.error("CRITICAL: Startup checks failed", failed=checker.failed_checks)
        raise StartupError(f"Critical startup checks failed: {', '.join(checker.failed_checks)}")

    app.state.document_service = DocumentService(settings)
    app.state.startup_results = checker.results

    yield

    logger.info("Shutting down TeamTrack API")


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="TeamTrack API",
        description="Shared task tracker - daily progress updates, schedule flags and team roster",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Register global exception handlers
    register_exception_handlers(app)

    # CORS configuration for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(data.router, prefix="/api", tags=["Data"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
    app.include_router(export.router, prefix="/api/export", tags=["Export"])

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "TeamTrack API",
            "version": "1.0.0"
        }

    @app.get("/health")
    async def health():
        """Detailed health check."""
        workspace = get_workspace_path(settings=settings)
        document = workspace / settings.document_file

        return {
            "status": "healthy",
            "components": {
                "api": "ok",
                "storage": "ok" if workspace.is_dir() else "missing",
                "document": "ok" if document.is_file() else "not_created",
            }
        }

    return app


app = create_app()
