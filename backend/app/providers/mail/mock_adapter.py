"""Mock mail provider for testing and local development.

Captures messages in memory instead of sending them, so tests can read the
delivered code from ``outbox``.
"""

import re

from app.providers.errors import ProviderError, TransientError
from app.providers.mail.base import MailProvider, VerificationEmail

_CODE_PATTERN = re.compile(r"^(\d+) - ")


class MockMailProvider(MailProvider):
    """In-memory mail provider.

    Attributes:
        outbox: Every message accepted, in order.
        fail_with: When set, ``send`` raises this error instead of accepting.
    """

    def __init__(self) -> None:
        self.outbox: list[VerificationEmail] = []
        self.fail_with: ProviderError | None = None

    @property
    def provider_name(self) -> str:
        """Return 'mock' for testing."""
        return "mock"

    def fail_next(self, error: ProviderError | None = None) -> None:
        """Make every following send fail until ``recover`` is called."""
        self.fail_with = error or TransientError("Mock delivery failure")

    def recover(self) -> None:
        """Accept messages again."""
        self.fail_with = None

    async def send(self, message: VerificationEmail) -> None:
        """Record the message, or raise the configured failure."""
        if self.fail_with is not None:
            raise self.fail_with
        self.outbox.append(message)

    def codes_for(self, email: str) -> list[str]:
        """Codes delivered to an address, oldest first."""
        codes: list[str] = []
        for message in self.outbox:
            if message.to_email != email:
                continue
            match = _CODE_PATTERN.match(message.subject)
            if match:
                codes.append(match.group(1))
        return codes

    def last_code_for(self, email: str) -> str | None:
        """Most recent code delivered to an address."""
        codes = self.codes_for(email)
        return codes[-1] if codes else None
