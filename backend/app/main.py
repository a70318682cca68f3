"""
Main FastAPI application.

WHY: This is the entry point for the application. It configures middleware,
routes, exception handlers, and other application-level concerns.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import AppException
from app.core.exception_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    generic_exception_handler,
)
from app.db.session import get_db
from app.middleware import SecurityHeadersMiddleware, RequestContextMiddleware, RateLimitMiddleware
from app.api import (
    appointments,
    audit_logs,
    doctors,
    inventory,
    medicines,
    patients,
    service_categories,
    services,
    users,
    webhooks,
)
from app.services.scheduler import start_scheduler, shutdown_scheduler, get_scheduler_status


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start and stop the background job scheduler with the application.

    WHY: Appointment reminders and the inventory expiry refresh run on a
    timer inside the API process.
    """
    if settings.SCHEDULER_ENABLED:
        await start_scheduler()
    try:
        yield
    finally:
        if settings.SCHEDULER_ENABLED:
            await shutdown_scheduler()


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows easier testing with different configurations
    and makes it possible to create multiple app instances if needed.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Dental clinic management API: doctors, patients, appointments and inventory",
        version=settings.VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # Register exception handlers
    # WHY: Exception handlers ensure consistent error responses across the API
    # and prevent sensitive data leaks in error messages (OWASP A04)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Request context first so IP, user agent and request id are available
    # to audit logging and to the booking metadata.
    app.add_middleware(RequestContextMiddleware)

    # Throttles the login and registration endpoints of staff, doctors and
    # patients (OWASP A07).
    app.add_middleware(RateLimitMiddleware)

    app.add_middleware(SecurityHeadersMiddleware)

    # Configure CORS
    # WHY: The clinic's web frontend runs on a different origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check(db: AsyncSession = Depends(get_db)) -> dict:
        """
        Health check endpoint.

        WHY: Load balancers and monitoring need to know whether the database
        is reachable and whether the background jobs are running.
        """
        try:
            await db.execute(text("SELECT 1"))
            database = "connected"
        except Exception as e:
            logger.error(f"Health check database ping failed: {e}")
            database = "unavailable"

        return {
            "status": "healthy" if database == "connected" else "degraded",
            "version": settings.VERSION,
            "database": database,
            "scheduler": get_scheduler_status(),
        }

    @app.get("/", tags=["root"])
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/api/docs",
        }

    # Register API routers
    # WHY: Organizing routes in separate modules improves maintainability
    for module in (
        users,
        service_categories,
        services,
        doctors,
        patients,
        appointments,
        medicines,
        inventory,
        audit_logs,
        webhooks,
    ):
        app.include_router(module.router, prefix=settings.API_V1_PREFIX)

    return app


# Create app instance
# WHY: Creating the app instance here allows it to be imported by uvicorn
# and other modules that need access to the FastAPI app.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
