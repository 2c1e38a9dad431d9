"""Retention cleanup service.

Application-layer deletion of auth records that no longer serve any purpose:

- Verification codes: deleted OTP_RETENTION_DAYS after issue, whatever their
  state. Until then they remain for audit.
- Sessions: deleted once expired.
- Rate-limit counters: deleted once their window can no longer be current.

The online sign-in path never deletes codes; only these jobs do.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import utc_now
from app.core.config import settings
from app.core.errors import APIError
from app.repositories.rate_limit_repository import RateLimitRepository
from app.repositories.session_repository import SessionRepository
from app.repositories.verification_code_repository import (
    VerificationCodeRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllCleanupResult:
    """Aggregate result of all cleanup jobs.

    Attributes:
        verification_codes: Codes past the retention window deleted.
        expired_sessions: Expired sessions deleted.
        rate_limit_windows: Stale rate-limit counter rows deleted.
    """

    verification_codes: int
    expired_sessions: int
    rate_limit_windows: int


class CleanupError(APIError):
    """Raised when a cleanup operation fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CLEANUP_ERROR",
            message=message,
            status_code=500,
        )


async def cleanup_verification_codes(
    db: AsyncSession, *, now: datetime | None = None
) -> int:
    """Delete verification codes issued more than OTP_RETENTION_DAYS ago.

    Args:
        db: Database session.
        now: Reference time, for tests.

    Returns:
        Number of codes deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    cutoff = (now or utc_now()) - timedelta(days=settings.otp_retention_days)
    try:
        return await VerificationCodeRepository.delete_created_before(db, cutoff)
    except SQLAlchemyError as exc:
        logger.error("Verification code cleanup failed: %s", exc)
        raise CleanupError("Verification code cleanup failed") from exc


async def cleanup_expired_sessions(
    db: AsyncSession, *, now: datetime | None = None
) -> int:
    """Delete sessions whose expiry has passed.

    Args:
        db: Database session.
        now: Reference time, for tests.

    Returns:
        Number of sessions deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        return await SessionRepository.delete_expired(db, now or utc_now())
    except SQLAlchemyError as exc:
        logger.error("Expired session cleanup failed: %s", exc)
        raise CleanupError("Expired session cleanup failed") from exc


async def cleanup_rate_limit_windows(
    db: AsyncSession, *, now: datetime | None = None
) -> int:
    """Delete counter rows older than the longest configured window.

    Args:
        db: Database session.
        now: Reference time, for tests.

    Returns:
        Number of counter rows deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    longest = max(settings.otp_issue_window_minutes, settings.otp_verify_window_minutes)
    cutoff = (now or utc_now()) - timedelta(minutes=longest)
    try:
        return await RateLimitRepository.delete_windows_before(db, cutoff)
    except SQLAlchemyError as exc:
        logger.error("Rate-limit window cleanup failed: %s", exc)
        raise CleanupError("Rate-limit window cleanup failed") from exc


async def run_all_cleanups(
    db: AsyncSession, *, now: datetime | None = None
) -> AllCleanupResult:
    """Run all cleanup jobs in the caller's transaction.

    Args:
        db: Database session.
        now: Reference time, for tests.

    Returns:
        AllCleanupResult with counts from all cleanup categories.

    Raises:
        CleanupError: If any database operation fails.
    """
    now = now or utc_now()
    result = AllCleanupResult(
        verification_codes=await cleanup_verification_codes(db, now=now),
        expired_sessions=await cleanup_expired_sessions(db, now=now),
        rate_limit_windows=await cleanup_rate_limit_windows(db, now=now),
    )
    logger.info(
        "Retention cleanup removed %d codes, %d sessions, %d counter rows",
        result.verification_codes,
        result.expired_sessions,
        result.rate_limit_windows,
    )
    return result
