"""Mail provider selection.

One provider instance per process, chosen from MAIL_PROVIDER on first use.
Tests swap in a MockMailProvider with set_mail_provider.
"""

from app.core.config import settings
from app.providers.mail.base import MailProvider
from app.providers.mail.mock_adapter import MockMailProvider
from app.providers.mail.resend_adapter import ResendMailAdapter

_mail_provider: MailProvider | None = None


def get_mail_provider() -> MailProvider:
    """Return the process-wide mail provider, creating it if needed.

    Raises:
        ValueError: If MAIL_PROVIDER names an unknown adapter.
    """
    global _mail_provider

    if _mail_provider is None:
        if settings.mail_provider == "resend":
            _mail_provider = ResendMailAdapter()
        elif settings.mail_provider == "mock":
            _mail_provider = MockMailProvider()
        else:
            raise ValueError(f"Unknown mail provider: {settings.mail_provider}")

    return _mail_provider


def set_mail_provider(provider: MailProvider) -> None:
    """Install a specific provider instance."""
    global _mail_provider
    _mail_provider = provider


def reset_providers() -> None:
    """Drop the cached provider so the next call re-reads settings."""
    global _mail_provider
    _mail_provider = None
