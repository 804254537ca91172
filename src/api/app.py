"""
FastAPI application with proper database lifecycle management.

The key insight: FastAPI maintains ONE event loop for the server's lifetime.
By initializing the database pool in the startup event, all connections
are created in that loop and pooling works correctly.
"""

from dotenv import load_dotenv

# Load .env file before any other imports that might need env vars
load_dotenv()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.agents import close_services, init_services
from api.database import close_database, get_session_factory, init_database
from api.ingestion_routes import router as ingestion_router
from api.routes import router
from mentor.exceptions import (
    ExternalServiceError,
    ForbiddenError,
    InvalidInputError,
    MentorError,
    NotFoundError,
)
from mentor.services.ingestion import FileTooLargeError, UnsupportedFileTypeError
from mentor.settings import get_settings

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    - startup: Initialize database pool IN the event loop, then the agent
    - shutdown: Close database connections cleanly
    """
    await init_database()
    init_services(get_session_factory())
    logger.info("Database pool and mentor services initialized")

    yield

    close_services()
    await close_database()
    logger.info("Database connections closed")


# Most specific class wins; Starlette walks the exception's MRO
_STATUS_CODES: dict[type[MentorError], int] = {
    NotFoundError: 404,
    ForbiddenError: 403,
    InvalidInputError: 400,
    UnsupportedFileTypeError: 415,
    FileTooLargeError: 413,
    ExternalServiceError: 502,
    MentorError: 500,
}


def _make_handler(status_code: int):
    async def handler(request: Request, exc: MentorError) -> JSONResponse:
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="AI Mentor API",
        description="AI-mentor conversations and lesson document ingestion",
        version="0.1.0",
        lifespan=lifespan,
    )

    settings = get_settings()

    # CORS middleware for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _make_handler(status_code))

    # Include routes
    app.include_router(router)
    app.include_router(ingestion_router)

    # Health check at root
    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


# Create the app instance
app = get_app()
