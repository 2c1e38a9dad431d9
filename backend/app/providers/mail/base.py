"""Abstract base class and message rendering for mail providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.core.config import settings


@dataclass(frozen=True)
class VerificationEmail:
    """Rendered sign-in code email.

    Attributes:
        to_email: Recipient address.
        subject: Subject line.
        text: Plain-text body.
    """

    to_email: str
    subject: str
    text: str


def render_verification_email(
    *, to_email: str, code: str, name: str | None = None
) -> VerificationEmail:
    """Build the sign-in code message.

    Args:
        to_email: Recipient address.
        code: Plain code; lives only in the message body and subject.
        name: Optional display name for the greeting.

    Returns:
        VerificationEmail ready to hand to a provider.
    """
    greeting = f"Hi {name}," if name else "Hi,"
    ttl = settings.otp_code_ttl_minutes
    return VerificationEmail(
        to_email=to_email,
        subject=f"{code} - Your verification code",
        text=(
            f"{greeting}\n\n"
            f"Use this code to sign in to your account:\n\n{code}\n\n"
            f"This code expires in {ttl} minutes. "
            "If you didn't request this, you can safely ignore this email."
        ),
    )


class MailProvider(ABC):
    """Abstract interface for transactional mail delivery.

    Implementations make exactly one delivery attempt per call. Retrying is
    the caller's decision (a resend issues a new code).
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider identifier for logging."""
        ...

    @abstractmethod
    async def send(self, message: VerificationEmail) -> None:
        """Deliver a rendered message.

        Args:
            message: Rendered email.

        Raises:
            ProviderError: Any subclass, when the provider did not accept
                the message.
        """
        ...

    async def send_verification_code(
        self, *, to_email: str, code: str, name: str | None = None
    ) -> None:
        """Render and deliver a sign-in code email.

        Args:
            to_email: Recipient address.
            code: Plain code.
            name: Optional display name.

        Raises:
            ProviderError: When delivery fails.
        """
        await self.send(
            render_verification_email(to_email=to_email, code=code, name=name)
        )
