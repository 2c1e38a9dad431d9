"""Tests for the per-email rate limiter.

Window arithmetic is pure; counting runs against PostgreSQL because the
conditional upsert is what makes the ceiling hold across processes.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import utc_now
from app.models import RateLimitCounter, VerificationCode
from app.services.rate_limiter import (
    RateLimitAction,
    RateLimiter,
    RateLimitPolicy,
    default_policies,
    window_bounds,
)

_EMAIL = "carol@example.org"


def _limiter(limit: int = 3, window_seconds: int = 900) -> RateLimiter:
    policy = RateLimitPolicy(limit=limit, window_seconds=window_seconds)
    return RateLimiter(
        policies={RateLimitAction.ISSUE: policy, RateLimitAction.VERIFY: policy},
        max_attempts=5,
    )


class TestWindowBounds:
    def test_aligns_to_window_length(self):
        now = datetime(2026, 5, 4, 10, 7, 30, tzinfo=UTC)
        start, end = window_bounds(now, 900)
        assert start == datetime(2026, 5, 4, 10, 0, tzinfo=UTC)
        assert end == datetime(2026, 5, 4, 10, 15, tzinfo=UTC)

    def test_boundary_starts_new_window(self):
        now = datetime(2026, 5, 4, 10, 15, tzinfo=UTC)
        start, _end = window_bounds(now, 900)
        assert start == now


class TestDefaultPolicies:
    def test_built_from_settings(self):
        policies = default_policies()
        assert policies[RateLimitAction.ISSUE] == RateLimitPolicy(3, 900)
        assert policies[RateLimitAction.VERIFY] == RateLimitPolicy(10, 900)


class TestAttemptsExhausted:
    def test_ceiling_is_inclusive(self):
        limiter = _limiter()
        assert limiter.attempts_exhausted(VerificationCode(attempt_count=4)) is False
        assert limiter.attempts_exhausted(VerificationCode(attempt_count=5)) is True


class TestAllow:
    """Counting against rate_limit_counters."""

    @pytest.mark.asyncio
    async def test_admits_up_to_limit_then_denies(self, db_session: AsyncSession):
        limiter = _limiter(limit=3)
        now = utc_now()

        decisions = [
            await limiter.allow(db_session, _EMAIL, RateLimitAction.ISSUE, now=now)
            for _ in range(4)
        ]

        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert decisions[-1].retry_after_seconds is not None
        assert 1 <= decisions[-1].retry_after_seconds <= 900

    @pytest.mark.asyncio
    async def test_counter_never_exceeds_ceiling(self, db_session: AsyncSession):
        limiter = _limiter(limit=2)
        now = utc_now()
        for _ in range(5):
            await limiter.allow(db_session, _EMAIL, RateLimitAction.ISSUE, now=now)

        count = await db_session.scalar(
            select(RateLimitCounter.count).where(
                RateLimitCounter.identity == _EMAIL
            )
        )
        assert count == 2

    @pytest.mark.asyncio
    async def test_new_window_resets(self, db_session: AsyncSession):
        limiter = _limiter(limit=1, window_seconds=900)
        now = datetime(2026, 5, 4, 10, 14, 59, tzinfo=UTC)

        first = await limiter.allow(db_session, _EMAIL, RateLimitAction.ISSUE, now=now)
        denied = await limiter.allow(
            db_session, _EMAIL, RateLimitAction.ISSUE, now=now
        )
        later = await limiter.allow(
            db_session,
            _EMAIL,
            RateLimitAction.ISSUE,
            now=now + timedelta(seconds=1),
        )

        assert first.allowed is True
        assert denied.allowed is False
        assert denied.retry_after_seconds == 1
        assert later.allowed is True

    @pytest.mark.asyncio
    async def test_actions_are_counted_separately(self, db_session: AsyncSession):
        limiter = _limiter(limit=1)
        now = utc_now()

        issue = await limiter.allow(db_session, _EMAIL, RateLimitAction.ISSUE, now=now)
        verify = await limiter.allow(
            db_session, _EMAIL, RateLimitAction.VERIFY, now=now
        )

        assert issue.allowed and verify.allowed

    @pytest.mark.asyncio
    async def test_key_is_normalized(self, db_session: AsyncSession):
        """Case and whitespace variants share one counter."""
        limiter = _limiter(limit=1)
        now = utc_now()

        first = await limiter.allow(
            db_session, "Carol@Example.org", RateLimitAction.ISSUE, now=now
        )
        second = await limiter.allow(
            db_session, "  carol@example.org ", RateLimitAction.ISSUE, now=now
        )

        assert first.allowed is True
        assert second.allowed is False

    @pytest.mark.asyncio
    async def test_concurrent_requests_respect_ceiling(
        self, session_factory: async_sessionmaker[AsyncSession]
    ):
        """Parallel sessions cannot overshoot the limit."""
        limiter = _limiter(limit=3)
        now = utc_now()

        async def attempt() -> bool:
            async with session_factory() as session:
                decision = await limiter.allow(
                    session, _EMAIL, RateLimitAction.ISSUE, now=now
                )
                await session.commit()
                return decision.allowed

        results = await asyncio.gather(*(attempt() for _ in range(8)))

        assert results.count(True) == 3
        async with session_factory() as session:
            rows = await session.scalar(select(func.count()).select_from(RateLimitCounter))
        assert rows == 1
