"""Mail provider error taxonomy.

Adapters translate HTTP statuses and network failures into these classes.
The code issuer treats every ProviderError as a failed delivery; the
subclass only changes what operators see in the log.
"""


class ProviderError(Exception):
    """Base class for mail provider failures."""


class AuthenticationError(ProviderError):
    """API key missing, invalid, or revoked. Needs operator action."""


class RateLimitError(ProviderError):
    """The provider throttled us (HTTP 429)."""

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class TransientError(ProviderError):
    """Timeout, connection failure, or 5xx. A later resend may succeed."""


class MailDeliveryError(ProviderError):
    """The provider refused this message (bad recipient or sender)."""
