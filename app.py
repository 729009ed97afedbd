"""Application factory and entry point.

Run with:
    uvicorn app:app --reload
or:
    task-api
"""
from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import auth_router, debug_router, tasks_router
from config import Settings
from errors import ApiError, message_for, status_for
from middleware import register_middleware
from store import TaskStore, UserStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
        stream=sys.stdout,
    )
    for _noisy in ("httpcore", "httpx", "urllib3"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc,
            exc_info=exc,
        )
    return _error_response(status_code, message_for(exc))


async def _request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    return _error_response(400, "Request body must be a JSON object")


async def _http_error_handler(
    request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status_for(exc), message_for(exc))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app(
    users: UserStore | None = None,
    tasks: TaskStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Accepts optional stores and settings for testing; creates fresh ones
    if omitted.  Each app owns its stores, reached by handlers through
    ``request.app.state``.
    """
    if settings is None:
        settings = Settings()
    if users is None:
        users = UserStore()
    if tasks is None:
        tasks = TaskStore()

    if settings.uses_default_secret and not settings.is_development:
        logger.warning(
            "JWT_SECRET is not set; using the insecure development default "
            "in the %r environment",
            settings.environment,
        )

    app = FastAPI(
        title="Task Manager API",
        description=(
            "Task management API with JWT bearer authentication. "
            "Register, log in, and manage your own tasks."
        ),
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.users = users
    app.state.tasks = tasks

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middleware(app)

    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(auth_router)
    app.include_router(tasks_router)
    if settings.enable_debug_routes:
        app.include_router(debug_router)
    return app


def main() -> None:
    settings = Settings()
    configure_logging(settings)
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


# Default app instance for `uvicorn app:app`
app = create_app()


if __name__ == "__main__":
    main()
