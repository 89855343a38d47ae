from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError

from app.stockflow.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.stockflow.core.metrics import metrics


_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}

_LOCK_TIMEOUT_MARKERS = (
    "lock timeout",
    "deadlock detected",
    "database is locked",
    "could not obtain lock",
)


def is_lock_timeout(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


def json_safe(value):
    """Make error and audit payloads JSON-serializable (money stays exact)."""
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def error_body(code: str, message: str, details: object, trace_id: str) -> dict:
    return {"code": code, "message": message, "details": details, "trace_id": trace_id}


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, details, trace_id))


def _respond(request: Request, exc: Exception, status_code: int, body: dict) -> JSONResponse:
    request.state.error_code = body["code"]
    request.state.error_class = exc.__class__.__name__
    if body["code"] == ErrorCatalog.LOCK_TIMEOUT.code:
        metrics.increment_lock_wait_timeout()
    # failed idempotent requests are stored so retries either replay or re-run
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        context.record_failure(status_code=status_code, response_body=body)
    return JSONResponse(status_code=status_code, content=body)


def _respond_with(request: Request, exc: Exception, error: ErrorDefinition, details: object) -> JSONResponse:
    body = error_body(error.code, error.message, json_safe(details), getattr(request.state, "trace_id", ""))
    return _respond(request, exc, error.status_code, body)


def _validation_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(part) for part in loc if part not in {"body", "query", "path", "header"})
        errors.append(
            {
                "field": field or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": json_safe(error.get("input")),
                "ctx": json_safe(error.get("ctx")),
            }
        )
    return {"errors": errors}


def _http_exception_body(request: Request, exc: HTTPException) -> dict:
    detail = exc.detail
    message = str(detail) if detail is not None else "HTTP error"
    details = None
    if isinstance(detail, dict):
        message = str(detail.get("message", message))
        details = {key: value for key, value in detail.items() if key != "message"} or None
    elif isinstance(detail, list):
        details = {"errors": detail}
    return error_body(
        _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR"),
        message,
        details,
        getattr(request.state, "trace_id", ""),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _respond_with(request, exc, exc.error, exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _respond(request, exc, exc.status_code, _http_exception_body(request, exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _respond_with(request, exc, ErrorCatalog.VALIDATION_ERROR, _validation_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        details = {"type": exc.__class__.__name__}
        if is_lock_timeout(exc):
            return _respond_with(request, exc, ErrorCatalog.LOCK_TIMEOUT, details)
        if isinstance(exc, IntegrityError):
            return _respond_with(request, exc, ErrorCatalog.CONFLICT, details)
        return _respond_with(request, exc, ErrorCatalog.INTERNAL_ERROR, details)
