"""Per-email rate limiting for code issuance and verification.

Fixed windows counted in PostgreSQL (rate_limit_counters), so limits hold
across every worker process. The per-client slowapi limits on the HTTP
routes sit in front of these and are configured in core/rate_limiting.py.

Denials never touch verification_codes.
"""

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import utc_now
from app.core.config import settings
from app.models.verification_code import VerificationCode
from app.repositories.rate_limit_repository import RateLimitRepository
from app.services.otp_codes import email_fingerprint, normalize_email

logger = structlog.get_logger()


class RateLimitAction(StrEnum):
    """Counted actions. Values double as the counter scope column."""

    ISSUE = "issue"
    VERIFY = "verify"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Ceiling for one action.

    Attributes:
        limit: Maximum events per window.
        window_seconds: Fixed window length.
    """

    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate-limit check.

    Attributes:
        allowed: Whether the event was admitted (and counted).
        retry_after_seconds: Seconds until the current window resets, when
            denied.
    """

    allowed: bool
    retry_after_seconds: int | None = None


def default_policies() -> dict[RateLimitAction, RateLimitPolicy]:
    """Policies built from settings."""
    return {
        RateLimitAction.ISSUE: RateLimitPolicy(
            limit=settings.otp_issue_limit,
            window_seconds=settings.otp_issue_window_minutes * 60,
        ),
        RateLimitAction.VERIFY: RateLimitPolicy(
            limit=settings.otp_verify_limit,
            window_seconds=settings.otp_verify_window_minutes * 60,
        ),
    }


def window_bounds(now: datetime, window_seconds: int) -> tuple[datetime, datetime]:
    """Start and end of the fixed window containing ``now``."""
    epoch = int(now.timestamp())
    start = epoch - epoch % window_seconds
    return (
        datetime.fromtimestamp(start, UTC),
        datetime.fromtimestamp(start + window_seconds, UTC),
    )


class RateLimiter:
    """Decides whether an issuance or verification request may proceed.

    Args:
        policies: Per-action ceilings. Defaults to the configured values.
        max_attempts: Failed-attempt ceiling per code.
    """

    def __init__(
        self,
        policies: dict[RateLimitAction, RateLimitPolicy] | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.policies = policies if policies is not None else default_policies()
        self.max_attempts = (
            max_attempts
            if max_attempts is not None
            else settings.otp_max_verify_attempts
        )

    async def allow(
        self,
        db: AsyncSession,
        key: str,
        action: RateLimitAction,
        *,
        now: datetime | None = None,
    ) -> RateLimitDecision:
        """Count one event for ``key`` and report whether it is admitted.

        The counter increment is flushed in the caller's transaction; the
        caller commits it together with the work it guards, or on its own
        when the request is rejected later.

        Args:
            db: Async database session.
            key: Email address (normalized here).
            action: Which ceiling to apply.
            now: Reference time, for tests.

        Returns:
            RateLimitDecision.
        """
        policy = self.policies[action]
        now = now or utc_now()
        identity = normalize_email(key)
        window_start, window_end = window_bounds(now, policy.window_seconds)

        count = await RateLimitRepository.increment_if_below(
            db,
            scope=action.value,
            identity=identity,
            window_start=window_start,
            ceiling=policy.limit,
        )
        if count is not None:
            return RateLimitDecision(allowed=True)

        retry_after = max(1, math.ceil((window_end - now).total_seconds()))
        logger.info(
            "rate_limit.denied",
            action=action.value,
            email_fp=email_fingerprint(identity),
            retry_after=retry_after,
        )
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

    def attempts_exhausted(self, code: VerificationCode) -> bool:
        """Whether a code has reached its failed-attempt ceiling."""
        return code.attempt_count >= self.max_attempts
