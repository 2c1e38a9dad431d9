"""Mail delivery providers."""

from app.providers.mail.base import (
    MailProvider,
    VerificationEmail,
    render_verification_email,
)
from app.providers.mail.mock_adapter import MockMailProvider
from app.providers.mail.resend_adapter import ResendMailAdapter

__all__ = [
    "MailProvider",
    "VerificationEmail",
    "render_verification_email",
    "MockMailProvider",
    "ResendMailAdapter",
]
