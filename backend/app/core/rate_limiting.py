"""Per-client rate limiting using slowapi.

Security: Caps how often one client may hit the auth endpoints, on top of
the per-email counters kept in the database by the OTP rate limiter.

Requests carrying a valid session cookie are keyed on the session subject
(per-user); everything else falls back to the client address.

Usage in routers:
    from app.core.rate_limiting import limiter

    @router.post("/send-code")
    @limiter.limit(lambda: settings.rate_limit_send_code)
    async def send_code(request: Request, ...):
        ...
"""

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.auth import decode_session_jwt
from app.core.config import settings

# Shared by every throttling path so callers cannot tell which ceiling was hit
TOO_MANY_ATTEMPTS_CODE = "TOO_MANY_ATTEMPTS"
TOO_MANY_ATTEMPTS_MESSAGE = "Too many attempts. Please try again later."

_DEFAULT_RETRY_AFTER_SECONDS = 60


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Valid session cookie: "user:{sub}"
    - No/invalid cookie: "client:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    # Only the sub claim is needed for keying. Full session validation
    # (server-side lookup) happens in deps.py.
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        try:
            payload = decode_session_jwt(token)
            sub = payload["sub"]
            # sub is a UUID string
            if len(sub) <= 36:
                return f"user:{sub}"
        except (jwt.InvalidTokenError, KeyError, TypeError):
            pass

    return f"client:{get_remote_address(request)}"


# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
# For multi-instance, configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Window length of the limit that was exceeded, in seconds."""
    try:
        return int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return _DEFAULT_RETRY_AFTER_SECONDS


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 with the same generic envelope used for the
    per-email and per-code ceilings; the limit detail is not echoed.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": TOO_MANY_ATTEMPTS_CODE,
                "message": TOO_MANY_ATTEMPTS_MESSAGE,
            }
        },
        headers={"Retry-After": str(_retry_after_seconds(exc))},
    )
