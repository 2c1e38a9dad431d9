"""Outcome errors for code issuance and verification.

Each error carries a machine-readable ``kind`` kept in operator logs, and an
HTTP mapping used when it reaches the API error handler. Endpoints that must
hide the precise kind from callers (send-code, already-consumed) catch these
explicitly before they reach the handler.
"""

from enum import StrEnum

from app.core.errors import APIError
from app.core.rate_limiting import TOO_MANY_ATTEMPTS_CODE, TOO_MANY_ATTEMPTS_MESSAGE

_CODE_EXPIRED_MESSAGE = "This code has expired. Please request a new code."


class OTPErrorKind(StrEnum):
    """Precise failure kinds, for logs and tests."""

    INVALID_EMAIL_FORMAT = "invalid_email_format"
    RATE_LIMITED = "rate_limited"
    NO_ACTIVE_CODE = "no_active_code"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID_CODE = "invalid_code"
    ALREADY_CONSUMED = "already_consumed"
    DELIVERY_FAILED = "delivery_failed"


class OTPError(APIError):
    """Base class for issuance and verification outcomes.

    Attributes:
        kind: Precise failure kind.
    """

    kind: OTPErrorKind


class InvalidEmailFormatError(OTPError):
    """Email address failed syntax validation (400)."""

    kind = OTPErrorKind.INVALID_EMAIL_FORMAT

    def __init__(self) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message="Please enter a valid email address",
            status_code=400,
        )


class RateLimitedError(OTPError):
    """Per-email ceiling reached for the current window (429).

    Attributes:
        retry_after_seconds: Seconds until the window resets.
    """

    kind = OTPErrorKind.RATE_LIMITED

    def __init__(self, retry_after_seconds: int | None = None) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            code=TOO_MANY_ATTEMPTS_CODE,
            message=TOO_MANY_ATTEMPTS_MESSAGE,
            status_code=429,
            headers=(
                {"Retry-After": str(retry_after_seconds)}
                if retry_after_seconds is not None
                else None
            ),
        )


class NoActiveCodeError(OTPError):
    """No open code exists for the email (400).

    Shares the caller-facing code and message with CodeExpiredError.
    """

    kind = OTPErrorKind.NO_ACTIVE_CODE

    def __init__(self) -> None:
        super().__init__(
            code="CODE_EXPIRED",
            message=_CODE_EXPIRED_MESSAGE,
            status_code=400,
        )


class CodeExpiredError(OTPError):
    """The open code is past its expiry (400)."""

    kind = OTPErrorKind.EXPIRED

    def __init__(self) -> None:
        super().__init__(
            code="CODE_EXPIRED",
            message=_CODE_EXPIRED_MESSAGE,
            status_code=400,
        )


class TooManyAttemptsError(OTPError):
    """The code reached its failed-attempt ceiling (429).

    Permanent for that code; only a fresh issuance helps.
    """

    kind = OTPErrorKind.TOO_MANY_ATTEMPTS

    def __init__(self) -> None:
        super().__init__(
            code=TOO_MANY_ATTEMPTS_CODE,
            message=TOO_MANY_ATTEMPTS_MESSAGE,
            status_code=429,
        )


class InvalidCodeError(OTPError):
    """Submitted code does not match (400)."""

    kind = OTPErrorKind.INVALID_CODE

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_CODE",
            message="Invalid code",
            status_code=400,
        )


class AlreadyConsumedError(OTPError):
    """The code was already used to sign in (409).

    The verify-code endpoint reports this as a benign success without a
    session cookie.
    """

    kind = OTPErrorKind.ALREADY_CONSUMED

    def __init__(self) -> None:
        super().__init__(
            code="ALREADY_CONSUMED",
            message="This code has already been used",
            status_code=409,
        )


class DeliveryFailedError(OTPError):
    """The mail provider did not accept the message (502).

    The stored code stays valid; a resend supersedes it.
    """

    kind = OTPErrorKind.DELIVERY_FAILED

    def __init__(self) -> None:
        super().__init__(
            code="DELIVERY_FAILED",
            message="We could not send the code. Please try again.",
            status_code=502,
        )
