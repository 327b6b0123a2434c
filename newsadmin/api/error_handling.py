from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from newsadmin.api.schemas import Envelope
from newsadmin.config import get_settings
from newsadmin.logging import get_logger, sanitize_error_message
from newsadmin.service.errors import ServiceError
from newsadmin.storage.errors import ConstraintViolation

logger = get_logger(__name__)

_LOCATION_PREFIXES = {"body", "query", "path", "header"}


def _error_response(
    status_code: int,
    message: str,
    errors: Optional[List[Any]] = None,
) -> JSONResponse:
    envelope = Envelope(success=False, message=message, errors=errors or None)
    return JSONResponse(status_code=status_code, content=envelope.render())


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc) or "body", "message": message})
    return errors


def _show_details() -> bool:
    return not get_settings().is_production


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers for domain and storage errors."""

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            method=request.method,
            fields=[e["field"] for e in errors],
        )
        return _error_response(400, "Validation failed", errors)

    @app.exception_handler(ConstraintViolation)
    async def handle_constraint_violation(request: Request, exc: ConstraintViolation):
        logger.warning(
            "constraint_violation",
            path=request.url.path,
            method=request.method,
            message=exc.message,
            detail=exc.detail,
        )
        errors = [{"field": exc.field, "message": exc.message}] if exc.field else None
        return _error_response(409, exc.message, errors)

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            detail=exc.detail,
        )
        return _error_response(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "http error"
        if exc.status_code >= 500:
            logger.error(
                "http_error",
                path=request.url.path,
                method=request.method,
                status_code=exc.status_code,
                message=message,
            )
        return _error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        errors = None
        if _show_details():
            errors = [
                {
                    "type": type(exc).__name__,
                    "message": sanitize_error_message(str(exc)),
                }
            ]
        return _error_response(500, "Internal server error", errors)
