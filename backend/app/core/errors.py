"""API error classes.

Every failure a client can see is an APIError: a machine-readable code, a
message safe to show to users, and an HTTP status. The handlers in
app.main render them into the ``{"error": {...}}`` envelope. Sign-in
outcome errors build on this base in app.services.otp_errors.
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_CODE").
        message: Caller-facing message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
        headers: Optional extra response headers (e.g., Retry-After).
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        self.headers = headers
        super().__init__(message)


class UnauthorizedError(APIError):
    """No valid session, or admin credentials rejected (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(code="UNAUTHORIZED", message=message, status_code=401)


class ForbiddenError(APIError):
    """Signed in, but not allowed (403)."""

    def __init__(
        self, message: str = "Access denied", code: str = "FORBIDDEN"
    ) -> None:
        super().__init__(code=code, message=message, status_code=403)


class AdminRequiredError(ForbiddenError):
    """Raised by require_admin when the session or account is not admin."""

    def __init__(self) -> None:
        super().__init__(message="Admin access required", code="ADMIN_REQUIRED")


class ConflictError(APIError):
    """Conflicting state, e.g. signup for an email that has an account (409)."""

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, status_code=409, details=details)


class StorageUnavailableError(APIError):
    """Database unreachable or failing (503).

    The only error clients should retry with backoff. The cause is logged
    for operators and never sent to the client.
    """

    def __init__(self, retry_after_seconds: int = 5) -> None:
        super().__init__(
            code="STORAGE_UNAVAILABLE",
            message="Service temporarily unavailable. Please try again shortly.",
            status_code=503,
            headers={"Retry-After": str(retry_after_seconds)},
        )
