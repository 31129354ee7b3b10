"""
Main FastAPI application entry point.

This module creates the FastAPI application instance and configures
all routes, middleware, and application lifecycle events.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import uvicorn
from typing import AsyncGenerator

from app.config.settings import settings
from app.core.database import create_tables
from app.core.redis import redis_manager
from app.api.routes import groups

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Ensures the database tables exist before the first request is served.
    """
    logger.info(f"Starting {settings.project_name}")
    create_tables()
    logger.info("Database tables verified")

    yield

    logger.info(f"Shutting down {settings.project_name}")


app = FastAPI(
    title=settings.project_name,
    description="""
    ## Group Chat Service

    Group management for the chat application: create and dismiss groups,
    invite and remove members, visit cards, and group notices.

    Callers are authenticated upstream; the verified user id arrives in the
    configured user id header. Membership events are pushed to members
    asynchronously through Celery and Redis.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url=f"{settings.api_v1_str}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled errors.

    Provides consistent error responses and logging for debugging.
    """
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error_detail = str(exc) if settings.debug else "Internal server error"

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": error_detail,
            "path": str(request.url),
            "method": request.method
        }
    )


@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.
    """
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": "development" if settings.debug else "production",
        "redis": "connected" if redis_manager.ping() else "unavailable",
    }


app.include_router(
    groups.router,
    prefix=f"{settings.api_v1_str}/group",
    tags=["Groups"]
)


# Development server entry point
if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
