import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from .config import Settings, configure_logging
from .db import Database
from .errors import register_exception_handlers
from .routes import completed_steps, projects, tasks

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    database: Database = app.state.database
    # Startup
    await database.init()
    logger.info("Database initialized successfully")
    yield
    # Shutdown
    await database.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one Settings instance"""
    if settings is None:
        settings = Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Task Tracker API",
        description="Tasks with next steps, milestones and a log of completed steps",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = Database(settings)

    logger.info("Environment: %s", settings.environment)
    logger.info("CORS origins: %s", settings.allowed_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    register_exception_handlers(app)

    app.include_router(tasks.router, prefix="/api")
    app.include_router(completed_steps.router, prefix="/api")
    app.include_router(projects.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root():
        """Serve the single-page UI"""
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/api/environment")
    async def environment():
        """Which deployment this is, so the UI can flag development"""
        return {"environment": settings.environment}

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "tasktracker",
            "version": VERSION,
        }

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        "tasktracker.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
