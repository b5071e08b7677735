import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.stockflow.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.stockflow.core.metrics import metrics

logger = logging.getLogger("stockflow.errors")

_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}

# Driver messages (SQLite, PostgreSQL) that mean we lost a lock race.
LOCK_TIMEOUT_MARKERS = (
    "database is locked",
    "lock timeout",
    "canceling statement due to lock timeout",
    "could not obtain lock",
    "deadlock detected",
)

_LOCATION_PREFIXES = {"body", "query", "path", "header"}


def is_lock_timeout(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in LOCK_TIMEOUT_MARKERS)


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "details": details, "trace_id": trace_id},
    )


def _respond(request: Request, exc: Exception, code: str, message: str, details: object, status_code: int) -> JSONResponse:
    # picked up by the request log line
    request.state.error_code = code
    request.state.error_class = exc.__class__.__name__
    return error_response(code, message, details, getattr(request.state, "trace_id", ""), status_code)


def _respond_with(request: Request, exc: Exception, definition: ErrorDefinition, details: object) -> JSONResponse:
    return _respond(request, exc, definition.code, definition.message, details, definition.status_code)


def _validation_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(part) for part in loc if part not in _LOCATION_PREFIXES)
        errors.append(
            {
                "field": field or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
            }
        )
    return {"errors": errors}


def _http_exception_parts(exc: HTTPException) -> tuple[str, object]:
    detail = exc.detail
    if isinstance(detail, dict):
        extra = {key: value for key, value in detail.items() if key != "message"}
        return str(detail.get("message", "HTTP error")), extra or None
    if isinstance(detail, list):
        return "HTTP error", {"errors": detail}
    return (str(detail) if detail is not None else "HTTP error"), None


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _respond_with(request, exc, exc.error, exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        message, details = _http_exception_parts(exc)
        code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        return _respond(request, exc, code, message, details, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _respond_with(request, exc, ErrorCatalog.VALIDATION_ERROR, _validation_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        details = {"type": exc.__class__.__name__}
        if is_lock_timeout(exc):
            metrics.increment_lock_wait_timeout()
            return _respond_with(request, exc, ErrorCatalog.LOCK_TIMEOUT, details)
        logger.exception("Unhandled error", extra={"trace_id": getattr(request.state, "trace_id", "")})
        return _respond_with(request, exc, ErrorCatalog.INTERNAL_ERROR, details)
