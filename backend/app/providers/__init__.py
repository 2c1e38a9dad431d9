"""Outbound delivery providers (currently mail only)."""

from app.providers.errors import (
    AuthenticationError,
    MailDeliveryError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.providers.factory import get_mail_provider, reset_providers, set_mail_provider

__all__ = [
    "AuthenticationError",
    "MailDeliveryError",
    "ProviderError",
    "RateLimitError",
    "TransientError",
    "get_mail_provider",
    "reset_providers",
    "set_mail_provider",
]
