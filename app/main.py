from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import router
from app.schemas import ErrorDetail, ErrorResponse
from app.stream import router as stream_router
from errors import ServiceError, ValidationError
from logging_config import configure_logging
from services.readings import build_default_service
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

_HTTP_ERROR_KINDS = {
    400: "BadRequest",
    401: "AuthError",
    403: "Forbidden",
    404: "NotFound",
    405: "MethodNotAllowed",
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_service()
    try:
        yield
    finally:
        service.shutdown()
        build_default_service.cache_clear()


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info(
        "Request rejected by validation",
        extra={"path": request.url.path, "violation_count": len(exc.violations)},
    )
    details = [
        ErrorDetail(
            field=violation.field,
            message=violation.message,
            rejected_value=violation.rejected_value,
        )
        for violation in exc.violations
    ]
    return _error_response(
        exc.status_code,
        ErrorResponse(error=exc.kind, message=exc.message, details=details),
    )


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    settings: Settings = request.app.state.settings
    if exc.status_code >= 500:
        logger.error(
            "Service error",
            exc_info=exc,
            extra={"path": request.url.path, "error_kind": exc.kind},
        )
    body = ErrorResponse(error=exc.kind, message=exc.message)
    if exc.status_code >= 500 and settings.is_development:
        cause = getattr(exc, "cause", None) or exc
        body.details = str(cause)
    return _error_response(exc.status_code, body)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _HTTP_ERROR_KINDS.get(exc.status_code, "HTTPError")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"The requested endpoint {request.url.path} does not exist"
    return _error_response(exc.status_code, ErrorResponse(error=kind, message=message))


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in error.get("loc", ())[1:]) or "request",
            message=error.get("msg", "Invalid value"),
            rejected_value=error.get("input"),
        )
        for error in exc.errors()
    ]
    return _error_response(
        400,
        ErrorResponse(
            error=ValidationError.kind, message="Invalid request", details=details
        ),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    settings: Settings = request.app.state.settings
    logger.exception(
        "Unhandled error", extra={"path": request.url.path, "status": 500}
    )
    if settings.is_development:
        body = ErrorResponse(
            error=type(exc).__name__,
            message=str(exc) or "Something went wrong",
            details=str(exc),
            stack=traceback.format_exception(type(exc), exc, exc.__traceback__),
        )
    else:
        body = ErrorResponse(error="InternalServerError", message="Something went wrong")
    return _error_response(500, body)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(
        title="CGM Glucose Telemetry",
        description="Ingests continuous glucose monitor readings and serves queries and statistics.",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.include_router(router)
    app.include_router(stream_router)
    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    return app

app = create_app()
