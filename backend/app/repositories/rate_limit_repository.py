"""Repository for per-identity rate-limit counters.

Counters are fixed windows keyed by (scope, identity, window_start). The
check-and-increment is one upsert so that concurrent requests in separate
processes cannot both slip under the ceiling.
"""

from datetime import datetime
from typing import Any, cast

from sqlalchemy import CursorResult, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rate_limit_counter import RateLimitCounter


class RateLimitRepository:
    """Stateless repository for RateLimitCounter table operations."""

    @staticmethod
    async def increment_if_below(
        db: AsyncSession,
        *,
        scope: str,
        identity: str,
        window_start: datetime,
        ceiling: int,
    ) -> int | None:
        """Count one event in a window unless the window is already full.

        Inserts the window row at count 1, or increments the existing row
        only while its count is below the ceiling. The conflict branch's
        WHERE clause makes a full window return no row.

        Args:
            db: Async database session.
            scope: Counter family (e.g. "issue", "verify").
            identity: Normalized key the limit applies to.
            window_start: Start of the current fixed window.
            ceiling: Maximum events allowed in the window.

        Returns:
            The new count if the event was admitted, None if denied.
        """
        stmt = (
            pg_insert(RateLimitCounter)
            .values(
                scope=scope,
                identity=identity,
                window_start=window_start,
                count=1,
            )
            .on_conflict_do_update(
                index_elements=["scope", "identity", "window_start"],
                set_={"count": RateLimitCounter.count + 1},
                where=RateLimitCounter.count < ceiling,
            )
            .returning(RateLimitCounter.count)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_windows_before(db: AsyncSession, cutoff: datetime) -> int:
        """Delete counter rows whose window started before a cutoff.

        Args:
            db: Async database session.
            cutoff: Oldest window_start to keep.

        Returns:
            Number of deleted rows.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                delete(RateLimitCounter).where(RateLimitCounter.window_start < cutoff)
            ),
        )
        row_count: int = result.rowcount
        return row_count
