"""HTTP server exposing the event API via FastAPI.

The public events list is served through the events-list cache; admin
endpoints read the store directly and bust the cache on every write.
Authentication and CORS are configurable via environment variables.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .. import __version__
from ..config.models import EnvSettings
from ..domain.models import (
    AdminEventListItem,
    Event,
    EventInput,
    EventListQuery,
    UserEventListItem,
)
from ..domain.service import EventNotFound, EventService, InitialSetupNeeded
from ..observability import setup_logging
from ..stores import EventStore, InMemoryEventStore
from ..utils.correlation import set_request_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "x-correlation-id"


class RequestLoggingMiddleware(
    BaseHTTPMiddleware
):  # pylint: disable=too-few-public-methods
    """Assign a correlation id to each request and log its outcome."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        req_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_request_id(req_id)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "http.request.failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
                exc_info=True,
            )
            raise

        response.headers[CORRELATION_HEADER] = req_id
        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return response


class HealthResponse(BaseModel):
    """Simple health/readiness response model."""

    status: str


class ErrorResponse(BaseModel):
    """Structured JSON error response for HTTP endpoints.

    Fields
    ------
    detail: str
        Human-readable explanation of the error.
    error_type: str
        Machine-readable error classification.
    """

    detail: str = Field(..., description="Human-readable error detail")
    error_type: str = Field(..., description="Machine-readable error type")


class CacheInvalidateRequest(BaseModel):
    """Body for the manual events-list cache bust.

    When ``query`` is omitted every cached listing is dropped.
    """

    query: Optional[EventListQuery] = None


def _error(status_code: int, detail: str, error_type: str) -> JSONResponse:
    err = ErrorResponse(detail=detail, error_type=error_type)
    return JSONResponse(status_code=status_code, content={"detail": err.model_dump()})


def _make_auth_dependency(settings: EnvSettings):
    """Return a dependency function that enforces the optional bearer token."""

    def _auth_dependency(authorization: str | None = Header(default=None)) -> None:
        expected = settings.http_token or None
        if expected is None:
            return
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        token = authorization.split(" ", 1)[1]
        if token != expected:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)

    return _auth_dependency


def _build_store(settings: EnvSettings) -> EventStore:
    if settings.events_file is not None:
        return InMemoryEventStore.from_file(settings.events_file)
    logger.warning(
        "store.empty", extra={"hint": "set EVENTREG_EVENTS_FILE to seed events"}
    )
    return InMemoryEventStore()


def _register_health(app: FastAPI) -> None:
    """Register health and readiness endpoints."""

    @app.get("/health", response_model=HealthResponse, summary="Liveness probe")
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/ready", response_model=HealthResponse, summary="Readiness probe")
    async def ready() -> HealthResponse:
        return HealthResponse(status="ready")


def _register_events(app: FastAPI, service: EventService, auth_dep: Any) -> None:
    """Register public and admin event endpoints."""

    @app.get(
        "/api/events",
        response_model=List[UserEventListItem],
        summary="List public events",
    )
    async def list_events(
        category: Optional[str] = None, since: Optional[str] = None
    ) -> List[UserEventListItem]:
        return await service.events_list_for_user(
            EventListQuery(category=category, since=since)
        )

    @app.get(
        "/api/admin/events",
        response_model=List[AdminEventListItem],
        dependencies=[Depends(auth_dep)],
        summary="List all events",
    )
    async def list_events_admin(
        category: Optional[str] = None,
    ) -> List[AdminEventListItem]:
        return await service.events_list_for_admin(EventListQuery(category=category))

    @app.post(
        "/api/admin/events",
        response_model=Event,
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(auth_dep)],
        summary="Create an event",
    )
    async def create_event(body: EventInput) -> Event:
        return await service.create_event(body)

    @app.put(
        "/api/admin/events/{event_id}",
        response_model=Event,
        dependencies=[Depends(auth_dep)],
        summary="Replace an event",
    )
    async def update_event(event_id: str, body: EventInput) -> Event:
        return await service.update_event(event_id, body)

    @app.delete(
        "/api/admin/events/{event_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        dependencies=[Depends(auth_dep)],
        summary="Delete an event",
    )
    async def delete_event(event_id: str) -> Response:
        await service.delete_event(event_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/api/admin/cache/invalidate",
        status_code=status.HTTP_204_NO_CONTENT,
        dependencies=[Depends(auth_dep)],
        summary="Bust the public events-list cache",
    )
    async def invalidate_cache(
        body: Optional[CacheInvalidateRequest] = None,
    ) -> Response:
        query = body.query if body is not None else None
        service.events_list_cache.invalidate(query)
        logger.info(
            "events.cache.invalidated",
            extra={"scope": "all" if query is None else "query"},
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Any, exc: Exception):  # noqa: D401
        return _error(400, str(exc), "validation_error")

    @app.exception_handler(EventNotFound)
    async def not_found_handler(_request: Any, exc: EventNotFound):  # noqa: D401
        return _error(404, f"Event {exc.args[0]!r} not found", "not_found")

    @app.exception_handler(InitialSetupNeeded)
    async def setup_needed_handler(
        _request: Any, exc: InitialSetupNeeded
    ):  # noqa: D401
        return _error(409, str(exc), "initial_setup_needed")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Any, exc: Any):  # noqa: D401
        detail = getattr(exc, "detail", "")
        return _error(exc.status_code, str(detail) or "HTTP error", "http_error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Any, exc: Exception):  # noqa: D401
        # Avoid leaking internals; log server-side, return generic error
        logger.error("http.unhandled_exception", exc_info=exc)
        return _error(
            500,
            "Internal error. See server logs for request id.",
            "internal_server_error",
        )

    # Mark handlers as intentionally used (registered via decorators)
    _ = (
        validation_exception_handler,
        not_found_handler,
        setup_needed_handler,
        http_exception_handler,
        unhandled_exception_handler,
    )


def create_app(
    settings: EnvSettings | None = None,
    store: EventStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    settings: EnvSettings, optional
        Settings to use; read from the environment when omitted.
    store: EventStore, optional
        Event store; built from ``settings.events_file`` when omitted.
    """
    settings = settings or EnvSettings()
    # Respect prior logging configuration from CLI; otherwise use env setting
    if not logging.getLogger().hasHandlers():
        setup_logging(settings.log_level)

    service = EventService.from_settings(settings, store or _build_store(settings))

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info(
            "http.startup",
            extra={
                "environment": settings.environment,
                "auth": "enabled" if settings.http_token else "disabled",
                "events_list_max_age_ms": settings.events_list_max_age_ms,
                "events_list_max_pending_age_ms": (
                    settings.events_list_max_pending_age_ms
                ),
                "events_list_cache": type(service.events_list_cache).__name__,
            },
        )
        try:
            yield
        finally:
            logger.info("http.shutdown")

    app = FastAPI(
        title="Event Registration API", version=__version__, lifespan=lifespan
    )
    app.state.service = service
    app.state.settings = settings

    _register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)
    origins = settings.cors_origin_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _register_health(app)
    _register_events(app, service, _make_auth_dependency(settings))
    return app
