"""Issue sign-in codes.

Flow for one request:
1. Normalize and validate the email.
2. Consult the per-email issuance limit.
3. Supersede any open code for the email.
4. Generate a fresh code and store only its keyed hash.
5. Commit, then hand the plain code to the mail provider once.

The plain code exists only in memory for the duration of the request and in
the outgoing message.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import utc_now
from app.core.config import settings
from app.providers.errors import ProviderError
from app.providers.factory import get_mail_provider
from app.providers.mail.base import MailProvider
from app.repositories.user_repository import UserRepository
from app.repositories.verification_code_repository import (
    VerificationCodeRepository,
)
from app.services.otp_codes import (
    email_fingerprint,
    generate_code,
    hash_code,
    validate_email_address,
)
from app.services.otp_errors import DeliveryFailedError, RateLimitedError
from app.services.rate_limiter import RateLimitAction, RateLimiter

logger = structlog.get_logger()


@dataclass(frozen=True)
class IssueResult:
    """Outcome of a successful issuance request.

    Attributes:
        email: Normalized email address.
        expires_at: Expiry of the new code; None when no code was issued.
        sent: False when the request was accepted without issuing a code
            (admin accounts with code sign-in disabled).
    """

    email: str
    expires_at: datetime | None
    sent: bool


class CodeIssuer:
    """Issues and delivers one-time sign-in codes.

    Args:
        rate_limiter: Limiter to consult. Defaults to the configured policy.
        mail_provider: Delivery channel. Defaults to the provider singleton.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        mail_provider: MailProvider | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter()
        self._mail_provider = mail_provider

    @property
    def mail_provider(self) -> MailProvider:
        """Configured delivery channel."""
        return self._mail_provider or get_mail_provider()

    async def issue(
        self,
        db: AsyncSession,
        email: str,
        *,
        name: str | None = None,
        now: datetime | None = None,
    ) -> IssueResult:
        """Issue a code for an email and deliver it.

        Args:
            db: Async database session. Committed by this call.
            email: Raw email address.
            name: Display name for the greeting, if known.
            now: Reference time, for tests.

        Returns:
            IssueResult.

        Raises:
            InvalidEmailFormatError: Malformed email; nothing is stored.
            RateLimitedError: Issuance ceiling reached; no code is touched.
            DeliveryFailedError: The provider did not accept the message.
                The stored code remains valid.
        """
        normalized = validate_email_address(email)
        now = now or utc_now()
        email_fp = email_fingerprint(normalized)

        user = await UserRepository.get_by_email(db, normalized)
        if user is not None and user.is_admin and not settings.otp_admin_login_enabled:
            logger.info("otp.admin_refused", email_fp=email_fp)
            return IssueResult(email=normalized, expires_at=None, sent=False)

        decision = await self.rate_limiter.allow(
            db, normalized, RateLimitAction.ISSUE, now=now
        )
        if not decision.allowed:
            logger.info("otp.issue_rejected", kind="rate_limited", email_fp=email_fp)
            raise RateLimitedError(decision.retry_after_seconds)

        superseded = await VerificationCodeRepository.supersede_open(
            db, email=normalized, now=now
        )

        code = generate_code()
        code_hash = hash_code(code)
        # A fresh code must differ from the one it replaces
        while code_hash in superseded:
            code = generate_code()
            code_hash = hash_code(code)

        expires_at = now + timedelta(minutes=settings.otp_code_ttl_minutes)
        try:
            await VerificationCodeRepository.create(
                db,
                email=normalized,
                code_hash=code_hash,
                created_at=now,
                expires_at=expires_at,
            )
        except IntegrityError as exc:
            # Lost the open-code race to a concurrent issuance for this email
            await db.rollback()
            logger.info("otp.issue_rejected", kind="concurrent_issue", email_fp=email_fp)
            raise RateLimitedError() from exc
        await db.commit()

        logger.info(
            "otp.issued",
            email_fp=email_fp,
            expires_at=expires_at.isoformat(),
            superseded=len(superseded),
        )

        await self._deliver(
            normalized, code, name=name or (user.name if user else None)
        )
        return IssueResult(email=normalized, expires_at=expires_at, sent=True)

    async def _deliver(self, email: str, code: str, *, name: str | None) -> None:
        provider = self.mail_provider
        try:
            await asyncio.wait_for(
                provider.send_verification_code(to_email=email, code=code, name=name),
                timeout=settings.mail_timeout_seconds,
            )
        except (ProviderError, TimeoutError) as exc:
            logger.warning(
                "otp.delivery_failed",
                provider=provider.provider_name,
                error=type(exc).__name__,
                email_fp=email_fingerprint(email),
            )
            raise DeliveryFailedError() from exc
