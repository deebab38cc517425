"""
Task Manager HTTP application

create_app() wires settings, logging, middleware, error handlers and routers.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .. import __version__
from ..config.logging import get_logger, log_api_request, request_id_var, setup_logging
from ..config.settings import Settings, settings as default_settings
from ..tasks.errors import ErrorKind
from ..tasks.store import TaskStore
from .deps import get_store, reset_dependencies
from .models import ErrorResponse
from .tasks import router as tasks_router

logger = get_logger("api")


# =============================================================================
# Middleware
# =============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a short id (X-Request-ID header and every log record
    emitted while handling it) and log one line with status and duration.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = uuid.uuid4().hex[:8]
        request.state.request_id = req_id
        token = request_id_var.set(req_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        response.headers["X-Request-ID"] = req_id

        log_api_request(
            logger,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id=req_id,
        )
        return response


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the task store at startup; close it on shutdown."""
    store_factory = app.dependency_overrides.get(get_store, get_store)
    store_factory()
    logger.info("Task Manager API started")

    yield

    reset_dependencies()
    logger.info("Task Manager API stopped")


# =============================================================================
# Error handlers
# =============================================================================


def _field_name(loc) -> str:
    """Last meaningful element of a pydantic error location."""
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters use the same envelope as field validation."""
    details = [
        {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    logger.info("Rejected malformed request %s %s", request.method, request.url.path)
    body = ErrorResponse(
        error=ErrorKind.VALIDATION.value,
        message="Request is malformed",
        details=details,
    )
    return JSONResponse(status_code=400, content=body.model_dump())


async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception: %s %s: %s",
        request.method, request.url.path, exc,
        exc_info=exc,
    )
    body = ErrorResponse(error="internal_error", message="An unexpected error occurred")
    return JSONResponse(status_code=500, content=body.model_dump())


# =============================================================================
# App factory
# =============================================================================


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Tests pass their own settings or override dependencies."""
    app_settings = app_settings or default_settings

    setup_logging(
        log_level=app_settings.log.level,
        json_logs=app_settings.log.json,
        log_file=app_settings.log.file,
    )

    app = FastAPI(
        title="Task Manager API",
        description="Task records: CRUD, filters, overdue detection, completion and statistics",
        version=__version__,
        lifespan=lifespan,
    )

    # Request logging
    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.api.cors_origins,
        allow_credentials="*" not in app_settings.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["ETag", "Location", "X-Request-ID"],
    )

    # Routers
    app.include_router(tasks_router, prefix="/api")

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Health check: verifies the task store answers
    @app.get("/health")
    def health(store: TaskStore = Depends(get_store)):
        checks = {"store": "ok" if store.ping() else "error"}
        overall = "ok" if checks["store"] == "ok" else "degraded"
        return {"status": overall, "checks": checks}

    # API info
    @app.get("/api")
    async def api_info():
        return {
            "name": "Task Manager API",
            "version": __version__,
            "endpoints": {
                "tasks": "/api/tasks",
                "task": "/api/tasks/{id}",
                "complete": "/api/tasks/{id}/complete",
                "by_status": "/api/tasks/status/{completed}",
                "by_priority": "/api/tasks/priority/{priority}",
                "overdue": "/api/tasks/overdue",
                "statistics": "/api/tasks/statistics",
            }
        }

    return app


# Module-level instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taskmanager.api.app:app",
        host=default_settings.api.host,
        port=default_settings.api.port,
        reload=True,
    )
