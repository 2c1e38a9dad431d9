"""Verify sign-in codes.

Consumption is decided by one conditional UPDATE on the code row. Of any
number of concurrent correct submissions, exactly one sees its UPDATE touch
a row; that request alone creates the session, in the same transaction.
Every other request reports the code as already consumed.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import utc_now
from app.models.user import User
from app.repositories.verification_code_repository import (
    VerificationCodeRepository,
)
from app.services.otp_codes import (
    codes_match,
    email_fingerprint,
    hash_code,
    is_well_formed,
    normalize_email,
)
from app.services.otp_errors import (
    AlreadyConsumedError,
    CodeExpiredError,
    InvalidCodeError,
    NoActiveCodeError,
    OTPError,
    RateLimitedError,
    TooManyAttemptsError,
)
from app.services.rate_limiter import RateLimitAction, RateLimiter
from app.services.session_manager import LoginOutcome, SessionManager

logger = structlog.get_logger()


@dataclass(frozen=True)
class VerifyResult:
    """Successful verification.

    Attributes:
        user: Signed-in account.
        session_token: Signed cookie value.
        session_expires_at: Session expiry.
        outcome: Existing or newly created account.
    """

    user: User
    session_token: str
    session_expires_at: datetime
    outcome: LoginOutcome


class CodeVerifier:
    """Checks submitted codes and issues a session on success.

    Args:
        rate_limiter: Limiter to consult. Defaults to the configured policy.
        session_manager: Session issuer. Defaults to a new SessionManager.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        session_manager: SessionManager | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter()
        self.session_manager = session_manager or SessionManager()

    async def verify(
        self,
        db: AsyncSession,
        email: str,
        submitted_code: str,
        *,
        now: datetime | None = None,
    ) -> VerifyResult:
        """Verify a submission and, on success, sign the user in.

        Failure bookkeeping (rate-limit counter, attempt count) is committed
        before the error propagates.

        Args:
            db: Async database session. Committed by this call.
            email: Raw email address.
            submitted_code: Code as typed by the user.
            now: Reference time, for tests.

        Returns:
            VerifyResult.

        Raises:
            RateLimitedError: Verification ceiling for the email reached.
            NoActiveCodeError: No open code for the email, or the submission
                is a code that was replaced by a newer one.
            CodeExpiredError: The open code is past its expiry.
            TooManyAttemptsError: The code reached its attempt ceiling.
            InvalidCodeError: Wrong or malformed submission.
            AlreadyConsumedError: The code was already used.
        """
        normalized = normalize_email(email)
        now = now or utc_now()
        try:
            result = await self._verify(db, normalized, submitted_code.strip(), now)
        except OTPError as exc:
            await db.commit()
            logger.info(
                "otp.verify_failed",
                kind=exc.kind.value,
                email_fp=email_fingerprint(normalized),
            )
            raise
        await db.commit()
        logger.info(
            "otp.verified",
            email_fp=email_fingerprint(normalized),
            outcome=result.outcome.value,
        )
        return result

    async def _verify(
        self, db: AsyncSession, email: str, submitted: str, now: datetime
    ) -> VerifyResult:
        well_formed = is_well_formed(submitted)
        submitted_hash = hash_code(submitted) if well_formed else None

        # Replays of a used or replaced code neither count against the
        # limiter nor touch the open code.
        await self._reject_closed_match(db, email, submitted_hash)

        decision = await self.rate_limiter.allow(
            db, email, RateLimitAction.VERIFY, now=now
        )
        if not decision.allowed:
            # The counter row lock is held from here; a concurrent winner
            # has committed by now.
            await self._reject_closed_match(db, email, submitted_hash)
            raise RateLimitedError(decision.retry_after_seconds)

        code = await VerificationCodeRepository.get_open(db, email)
        if code is None:
            await self._reject_closed_match(db, email, submitted_hash)
            raise NoActiveCodeError()

        if code.expires_at <= now:
            raise CodeExpiredError()
        if self.rate_limiter.attempts_exhausted(code):
            raise TooManyAttemptsError()

        if not well_formed or not codes_match(submitted, code.code_hash):
            await VerificationCodeRepository.increment_attempts(db, code.id)
            raise InvalidCodeError()

        consumed = await VerificationCodeRepository.consume(
            db,
            code_id=code.id,
            now=now,
            max_attempts=self.rate_limiter.max_attempts,
        )
        if not consumed:
            raise await self._consume_failure(db, code.id, now)

        issued = await self.session_manager.issue_session(db, email, now=now)
        return VerifyResult(
            user=issued.user,
            session_token=issued.token,
            session_expires_at=issued.expires_at,
            outcome=issued.outcome,
        )

    async def _reject_closed_match(
        self, db: AsyncSession, email: str, submitted_hash: str | None
    ) -> None:
        """Raise if the submission is a code that was consumed or superseded.

        A consumed match is a duplicate of a successful sign-in; a
        superseded match is a stale code from an earlier email.
        """
        if submitted_hash is None:
            return
        match = await VerificationCodeRepository.get_latest_with_hash(
            db, email, submitted_hash
        )
        if match is None:
            return
        if match.consumed_at is not None:
            raise AlreadyConsumedError()
        if match.superseded_at is not None:
            raise NoActiveCodeError()

    async def _consume_failure(
        self, db: AsyncSession, code_id: uuid.UUID, now: datetime
    ) -> OTPError:
        """Explain why the conditional consume touched no row."""
        fresh = await VerificationCodeRepository.get_by_id(db, code_id)
        if fresh is None:
            return NoActiveCodeError()
        if fresh.consumed_at is not None:
            return AlreadyConsumedError()
        if fresh.expires_at <= now:
            return CodeExpiredError()
        if self.rate_limiter.attempts_exhausted(fresh):
            return TooManyAttemptsError()
        return NoActiveCodeError()
