"""Repository for VerificationCode storage operations.

Every state transition on a code is a single conditional UPDATE so that
concurrent requests across processes settle on the database row rather
than on in-process locks.
"""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import CursorResult, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.verification_code import VerificationCode


class VerificationCodeRepository:
    """Stateless repository for VerificationCode table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        code_hash: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> VerificationCode:
        """Store a new open code.

        Args:
            db: Async database session.
            email: Normalized email address.
            code_hash: Keyed hash of the plain code.
            created_at: Issue time.
            expires_at: Expiry time.

        Returns:
            Created VerificationCode.

        Raises:
            sqlalchemy.exc.IntegrityError: If another open code exists for
                the email (concurrent issuance lost the race).
        """
        code = VerificationCode(
            email=email,
            code_hash=code_hash,
            created_at=created_at,
            expires_at=expires_at,
            attempt_count=0,
        )
        db.add(code)
        await db.flush()
        await db.refresh(code)
        return code

    @staticmethod
    async def get_by_id(
        db: AsyncSession, code_id: uuid.UUID
    ) -> VerificationCode | None:
        """Fetch a code by primary key, bypassing any cached instance."""
        stmt = (
            select(VerificationCode)
            .where(VerificationCode.id == code_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_open(db: AsyncSession, email: str) -> VerificationCode | None:
        """Fetch the open (unconsumed, not superseded) code for an email.

        The partial unique index guarantees at most one such row. The row
        may still be past its expiry; the caller decides.

        Args:
            db: Async database session.
            email: Normalized email address.

        Returns:
            The open VerificationCode, or None.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.email == email,
                VerificationCode.consumed_at.is_(None),
                VerificationCode.superseded_at.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_latest_with_hash(
        db: AsyncSession, email: str, code_hash: str
    ) -> VerificationCode | None:
        """Fetch the newest code for an email whose hash equals code_hash.

        The open code is always the newest row for its email, so when it
        matches it is the one returned.

        Args:
            db: Async database session.
            email: Normalized email address.
            code_hash: Keyed hash of the submitted code.

        Returns:
            The matching VerificationCode in any state, or None.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.email == email,
                VerificationCode.code_hash == code_hash,
            )
            .order_by(VerificationCode.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def supersede_open(
        db: AsyncSession,
        *,
        email: str,
        now: datetime,
    ) -> list[str]:
        """Close the open code for an email ahead of a new issuance.

        Args:
            db: Async database session.
            email: Normalized email address.
            now: Supersession timestamp.

        Returns:
            Hashes of the codes that were superseded (zero or one).
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.email == email,
                VerificationCode.consumed_at.is_(None),
                VerificationCode.superseded_at.is_(None),
            )
            .values(superseded_at=now)
            .returning(VerificationCode.code_hash)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def increment_attempts(db: AsyncSession, code_id: uuid.UUID) -> int | None:
        """Atomically record a failed attempt against an unconsumed code.

        Args:
            db: Async database session.
            code_id: Code that received a wrong submission.

        Returns:
            The new attempt count, or None if the code was consumed in the
            meantime.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,
                VerificationCode.consumed_at.is_(None),
            )
            .values(attempt_count=VerificationCode.attempt_count + 1)
            .returning(VerificationCode.attempt_count)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        code_id: uuid.UUID,
        now: datetime,
        max_attempts: int,
    ) -> bool:
        """Mark a code consumed if, and only if, it is still consumable.

        Single conditional UPDATE: ``consumed_at`` is set only where it is
        still NULL, the code is not superseded, unexpired, and under the
        attempt ceiling. Under concurrent calls for the same row, the row
        lock makes every caller but the first see zero rows updated.

        Args:
            db: Async database session.
            code_id: Code to consume.
            now: Consumption timestamp.
            max_attempts: Attempt ceiling.

        Returns:
            True if this call consumed the code, False otherwise.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,
                VerificationCode.consumed_at.is_(None),
                VerificationCode.superseded_at.is_(None),
                VerificationCode.expires_at > now,
                VerificationCode.attempt_count < max_attempts,
            )
            .values(consumed_at=now)
            .returning(VerificationCode.id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def delete_created_before(db: AsyncSession, cutoff: datetime) -> int:
        """Delete codes issued before a cutoff (retention cleanup).

        Args:
            db: Async database session.
            cutoff: Rows with created_at older than this are removed.

        Returns:
            Number of deleted rows.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                delete(VerificationCode).where(VerificationCode.created_at < cutoff)
            ),
        )
        row_count: int = result.rowcount
        return row_count
