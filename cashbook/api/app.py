"""
FastAPI Application

Run with:
    uvicorn cashbook.api.app:create_app --factory

The app is built by a factory so tests and scripts can inject their own
components (in-memory database, fake recognition agent).
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cashbook import __version__
from cashbook.api.routes import router
from cashbook.config import get_settings, validate_all_settings
from cashbook.errors import BatchSaveError, CashbookError
from cashbook.orchestrator import AppComponents, create_app_components


logger = structlog.get_logger(__name__)

API_PREFIX = "/api"

# Reachable without a session cookie
PUBLIC_PATHS = ("/api/auth/", "/api/health")


def error_body(message: str, **extra) -> dict:
    return {"success": False, "error": message, **extra}


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(CashbookError)
    async def handle_cashbook_error(request: Request, exc: CashbookError):
        extra = {}
        if isinstance(exc, BatchSaveError):
            extra = {
                "failedIndex": exc.failed_index,
                "transactions": [t.to_api() for t in exc.saved],
            }
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
        return JSONResponse(error_body(str(exc), **extra), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(error_body(_validation_message(exc)), status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        components: AppComponents = request.app.state.components
        await components.audit_logger.log_error(
            error_type=type(exc).__name__,
            error_message=str(exc),
            details={"path": request.url.path},
        )
        return JSONResponse(error_body("Internal server error"), status_code=500)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the API application.

    Tables are created on startup and the engine is disposed on shutdown.
    """
    components = components or create_app_components()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await components.database.create_all()
        await components.auth_service.purge_expired_sessions()
        status = validate_all_settings()
        if not status["gemini_default_key"]:
            logger.warning("no_default_vision_key", hint="recognition needs a key from the client")
        logger.info("api_started", database=components.database.url.split("://", 1)[0])
        yield
        await components.database.dispose()

    app = FastAPI(title="Cashbook API", version=__version__, lifespan=lifespan)
    app.state.components = components

    @app.middleware("http")
    async def require_session_cookie(request: Request, call_next):
        """Reject API calls without a session cookie before any work is done."""
        path = request.url.path
        if path.startswith(f"{API_PREFIX}/") and not path.startswith(PUBLIC_PATHS):
            if not request.cookies.get(get_settings().session.cookie_name):
                return JSONResponse(error_body("Not logged in"), status_code=401)
        return await call_next(request)

    register_exception_handlers(app)
    app.include_router(router, prefix=API_PREFIX)
    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    settings = get_settings().app
    uvicorn.run(
        "cashbook.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug_mode,
    )


if __name__ == "__main__":
    run()
