"""FastAPI application for the email code sign-in service.

Wires the v1 auth routers, CORS for the browser client, security headers,
and the handlers that turn every failure into the JSON error envelope.
Run with ``uvicorn app.main:app``.
"""

import logging

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.errors import APIError, StorageUnavailableError
from app.core.rate_limiting import limiter, rate_limit_exceeded_handler
from app.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

# The API serves JSON only, so nothing may be framed, sniffed, or loaded.
_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}
_HSTS = "max-age=31536000; includeSubDomains"

# Connectivity failures from the driver or pool surface as 503.
_STORAGE_ERRORS: tuple[type[Exception], ...] = (
    OperationalError,
    InterfaceError,
    ConnectionRefusedError,
)


def configure_logging() -> None:
    """Apply LOG_LEVEL to stdlib logging and structlog."""
    level = logging.getLevelName(settings.log_level.upper())
    logging.basicConfig(level=level)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the static security headers to every response.

    Auth responses under ``/api/`` carry session cookies and user data, so
    they are also marked ``no-store``. HSTS is only sent in production,
    where TLS terminates at the proxy.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(_SECURITY_HEADERS)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = _HSTS
        return response


def _envelope(
    status_code: int,
    code: str,
    message: str,
    details: list | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(
        status_code=status_code, content=body.model_dump(), headers=headers
    )


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError, passing through headers such as Retry-After."""
    return _envelope(
        exc.status_code, exc.code, exc.message, exc.details, exc.headers
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request body errors as 400 VALIDATION_ERROR.

    Malformed emails, missing fields, and unexpected fields all land here
    before any code is generated or checked.
    """
    details = [
        {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
        for e in exc.errors()
    ]
    return _envelope(400, "VALIDATION_ERROR", "Request validation failed", details)


def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map database connectivity failures to 503 STORAGE_UNAVAILABLE.

    Operators get the exception type in the log; clients only learn that
    the request can be retried.
    """
    logger.error(
        "storage.unavailable",
        error=type(exc).__name__,
        path=request.url.path,
    )
    return api_error_handler(request, StorageUnavailableError())


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, return a bare 500."""
    logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
    return _envelope(500, "INTERNAL_ERROR", "An unexpected error occurred")


def create_app() -> FastAPI:
    """Build the application.

    A factory so tests can construct apps after patching settings.
    """
    configure_logging()

    app = FastAPI(
        title="Helping Hand Auth API",
        version="1.0.0",
        description="Passwordless email code sign-in",
    )

    # Starlette runs middleware last-added first; CORS must see preflights.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    for exc_type in _STORAGE_ERRORS:
        app.add_exception_handler(exc_type, storage_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.state.limiter = limiter
    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Liveness probe."""
        return {"status": "healthy"}

    return app


app = create_app()
