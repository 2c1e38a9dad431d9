"""Repository for server-side session records."""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import CursorResult, delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.session import Session


class SessionRepository:
    """Stateless repository for Session table operations.

    Only the hash of a session identifier is ever stored or queried.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        token_hash: str,
        user_id: uuid.UUID,
        role: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> Session:
        """Store a new session.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex digest of the session identifier.
            user_id: Owning user.
            role: Role snapshot at issuance.
            created_at: Issue time.
            expires_at: Expiry time.

        Returns:
            Created Session.
        """
        session = Session(
            token_hash=token_hash,
            user_id=user_id,
            role=role,
            created_at=created_at,
            expires_at=expires_at,
        )
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def get_by_token_hash(db: AsyncSession, token_hash: str) -> Session | None:
        """Fetch a session and its user by identifier hash.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex digest of the session identifier.

        Returns:
            Session with ``user`` loaded, or None.
        """
        stmt = (
            select(Session)
            .where(Session.token_hash == token_hash)
            .options(selectinload(Session.user))
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_by_token_hash(db: AsyncSession, token_hash: str) -> int:
        """Delete a session by identifier hash. Returns rows deleted (0 or 1)."""
        result = cast(
            CursorResult[Any],
            await db.execute(delete(Session).where(Session.token_hash == token_hash)),
        )
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_expired(db: AsyncSession, now: datetime) -> int:
        """Delete sessions that expired before ``now``.

        Args:
            db: Async database session.
            now: Reference time.

        Returns:
            Number of deleted rows.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(delete(Session).where(Session.expires_at < now)),
        )
        row_count: int = result.rowcount
        return row_count
