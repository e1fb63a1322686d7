"""FastAPI main application with app factory and route configuration."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .deps import get_settings
from .errors import InternalError, TaskAPIError
from .middleware import register_middleware
from .models.task import utcnow
from .routes import auth, export, tasks
from .schemas import HealthResponse
from .services.auth_service import AuthService
from .services.task_service import TaskService
from .services.user_repository import InMemoryUserRepository
from .storage.base import create_task_store
from .utils.logging import log_shutdown_info, log_startup_info, setup_logging

logger = logging.getLogger(__name__)

API_VERSION = "2.0.0"


def _error_body(message: str, error_code: Optional[str] = None) -> dict:
    body = {"success": False, "message": message}
    if error_code:
        body["error"] = error_code
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    settings: Settings = app.state.settings

    # Startup
    setup_logging(settings)
    log_startup_info(settings)

    try:
        await app.state.task_store.initialize()
        logger.info(f"Task store initialized ({app.state.task_store.name})")

        if settings.seed_sample_tasks:
            await app.state.task_service.seed_sample_tasks()

        if settings.seed_demo_users:
            await app.state.auth_service.seed_demo_users()

        app.state.started_at = time.monotonic()
        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error(f"Error during application startup: {str(e)}")
        raise

    yield

    # Shutdown
    try:
        await app.state.task_store.close()
        log_shutdown_info(settings)

    except Exception as e:
        logger.error(f"Error during application shutdown: {str(e)}")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The task store, services and user repository are built here and kept
    on ``app.state``; nothing is shared between app instances.

    Args:
        settings: Settings to use; defaults to the environment-loaded ones

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="REST API for managing tasks with swappable storage and JWT authentication",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    task_store = create_task_store(settings)
    app.state.settings = settings
    app.state.task_store = task_store
    app.state.task_service = TaskService(task_store)
    app.state.auth_service = AuthService(InMemoryUserRepository(), settings)
    app.state.started_at = time.monotonic()

    register_middleware(app, settings)

    # Custom exception handlers
    @app.exception_handler(TaskAPIError)
    async def api_error_handler(request: Request, exc: TaskAPIError):
        """Render service errors in the response envelope."""
        if isinstance(exc, InternalError):
            logger.error(f"{exc.message} for {request.method} {request.url.path}: {exc.detail}")
            error = exc.detail if settings.is_development and exc.detail else exc.error_code
            return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, error))

        logger.warning(
            f"HTTP {exc.status_code}: {exc.message} for {request.method} {request.url.path}"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.error_code),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions (unknown routes, wrong methods) with the envelope."""
        logger.warning(
            f"HTTP {exc.status_code}: {exc.detail} for {request.method} {request.url.path}"
        )

        if exc.status_code == status.HTTP_404_NOT_FOUND:
            body = _error_body(f"Route {request.url.path} not found", "ROUTE_NOT_FOUND")
        elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            body = _error_body(
                f"Method {request.method} not allowed for {request.url.path}",
                "METHOD_NOT_ALLOWED",
            )
        else:
            body = _error_body(str(exc.detail))

        return JSONResponse(
            status_code=exc.status_code,
            content=body,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request body validation errors as 400s."""
        errors = exc.errors()
        logger.warning(f"Validation error for {request.method} {request.url.path}: {errors}")

        message = "Invalid request body"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {location + ': ' if location else ''}{first.get('msg')}"

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(message, "VALIDATION_ERROR"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            f"Unexpected error for {request.method} {request.url.path}: {str(exc)}",
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                "Something went wrong!",
                str(exc) if settings.is_development else "Internal server error",
            ),
        )

    # Health check endpoint
    @app.get("/health", tags=["health"], response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Liveness check for monitoring and load balancers."""
        return HealthResponse(
            status="OK",
            message=f"{settings.app_name} is running",
            timestamp=utcnow(),
            version=API_VERSION,
            environment=settings.environment,
            storage=request.app.state.task_store.name,
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
        )

    # Root endpoint
    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information.

        Returns:
            API information and available endpoints
        """
        return {
            "success": True,
            "name": settings.app_name,
            "version": API_VERSION,
            "docs_url": "/docs",
            "health_check": "/health",
            "authentication": {
                "type": "Bearer Token (JWT)",
                "header": "Authorization: Bearer <token>",
                "required_for_tasks": settings.require_auth_for_tasks,
            },
            "endpoints": {
                "tasks": "/api/tasks",
                "auth": "/api/auth",
                "export": "/api/export/tasks/{format}",
            },
        }

    # Include routers with proper prefixes and tags
    app.include_router(tasks.router, prefix="/api/tasks")

    app.include_router(auth.router, prefix="/api/auth")

    app.include_router(export.router, prefix="/api/export")

    logger.info("FastAPI application created and configured")

    return app


def run() -> None:
    """Run the API with uvicorn using environment settings."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "task_api.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_config=None,
    )


# Create the app instance
app = create_app()


if __name__ == "__main__":
    run()
