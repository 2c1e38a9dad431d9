"""Tests for API error classes and sign-in outcome errors.

HTTP status codes, machine-readable codes, and the caller-facing messages
shared between outcomes that must not be told apart.
"""

import pytest

from app.core.errors import (
    AdminRequiredError,
    APIError,
    ConflictError,
    ForbiddenError,
    StorageUnavailableError,
    UnauthorizedError,
)
from app.services.otp_errors import (
    AlreadyConsumedError,
    CodeExpiredError,
    DeliveryFailedError,
    InvalidCodeError,
    InvalidEmailFormatError,
    NoActiveCodeError,
    OTPError,
    OTPErrorKind,
    RateLimitedError,
    TooManyAttemptsError,
)


class TestAPIError:
    """Tests for base APIError class."""

    def test_api_error_has_required_attributes(self):
        """APIError should have code, message, status_code, details."""
        error = APIError(
            code="TEST_ERROR",
            message="Test message",
            status_code=418,
            details=[{"field": "test"}],
        )
        assert error.code == "TEST_ERROR"
        assert error.message == "Test message"
        assert error.status_code == 418
        assert error.details == [{"field": "test"}]

    def test_api_error_defaults(self):
        """APIError defaults to 500 with no details or headers."""
        error = APIError(code="TEST", message="Test")
        assert error.status_code == 500
        assert error.details is None
        assert error.headers is None
        assert str(error) == "Test"


class TestCoreErrors:
    """Status and code for each shared error class."""

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (UnauthorizedError(), 401, "UNAUTHORIZED"),
            (ForbiddenError(), 403, "FORBIDDEN"),
            (AdminRequiredError(), 403, "ADMIN_REQUIRED"),
            (ConflictError("EMAIL_EXISTS", "taken"), 409, "EMAIL_EXISTS"),
        ],
    )
    def test_status_and_code(self, error, status, code):
        assert error.status_code == status
        assert error.code == code

    def test_admin_required_is_forbidden(self):
        assert isinstance(AdminRequiredError(), ForbiddenError)

    def test_storage_unavailable_is_retryable(self):
        """503 with a Retry-After hint and a generic message."""
        error = StorageUnavailableError(retry_after_seconds=7)
        assert error.status_code == 503
        assert error.code == "STORAGE_UNAVAILABLE"
        assert error.headers == {"Retry-After": "7"}
        assert "database" not in error.message.lower()


class TestOTPErrors:
    """Mapping of sign-in outcomes to HTTP responses."""

    @pytest.mark.parametrize(
        ("error", "kind", "status", "code"),
        [
            (
                InvalidEmailFormatError(),
                OTPErrorKind.INVALID_EMAIL_FORMAT,
                400,
                "VALIDATION_ERROR",
            ),
            (RateLimitedError(), OTPErrorKind.RATE_LIMITED, 429, "TOO_MANY_ATTEMPTS"),
            (NoActiveCodeError(), OTPErrorKind.NO_ACTIVE_CODE, 400, "CODE_EXPIRED"),
            (CodeExpiredError(), OTPErrorKind.EXPIRED, 400, "CODE_EXPIRED"),
            (
                TooManyAttemptsError(),
                OTPErrorKind.TOO_MANY_ATTEMPTS,
                429,
                "TOO_MANY_ATTEMPTS",
            ),
            (InvalidCodeError(), OTPErrorKind.INVALID_CODE, 400, "INVALID_CODE"),
            (
                AlreadyConsumedError(),
                OTPErrorKind.ALREADY_CONSUMED,
                409,
                "ALREADY_CONSUMED",
            ),
            (
                DeliveryFailedError(),
                OTPErrorKind.DELIVERY_FAILED,
                502,
                "DELIVERY_FAILED",
            ),
        ],
    )
    def test_kind_status_and_code(self, error, kind, status, code):
        assert isinstance(error, OTPError)
        assert isinstance(error, APIError)
        assert error.kind == kind
        assert error.status_code == status
        assert error.code == code

    def test_no_active_code_and_expired_look_identical(self):
        """Callers cannot tell a missing code from an expired one."""
        missing, expired = NoActiveCodeError(), CodeExpiredError()
        assert (missing.code, missing.message) == (expired.code, expired.message)
        assert missing.kind != expired.kind

    def test_rate_limits_share_one_message(self):
        """Per-email and per-code ceilings produce the same response body."""
        limited, exhausted = RateLimitedError(), TooManyAttemptsError()
        assert (limited.code, limited.message) == (exhausted.code, exhausted.message)

    def test_rate_limited_carries_retry_after(self):
        error = RateLimitedError(retry_after_seconds=120)
        assert error.retry_after_seconds == 120
        assert error.headers == {"Retry-After": "120"}

    def test_rate_limited_without_hint_has_no_header(self):
        assert RateLimitedError().headers is None
