"""Repository for User operations used by the sign-in flow.

Provides database access for the users table. Profile and role management
happen elsewhere; this repository only resolves, creates, and stamps
verification on accounts.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserRole


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        name: str | None = None,
        phone: str | None = None,
        email_verified: datetime | None = None,
    ) -> User:
        """Create a new member account.

        Email is normalized to lowercase before storage. Self-service paths
        can only ever produce the member role; other roles are assigned by
        administrators outside the sign-in flow.

        Args:
            db: Async database session.
            email: User email address.
            name: Display name.
            phone: Contact phone number.
            email_verified: Timestamp when email was verified.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email.strip().lower(),
            name=name,
            phone=phone,
            role=UserRole.MEMBER.value,
            email_verified=email_verified,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def mark_email_verified(
        db: AsyncSession, user: User, *, verified_at: datetime
    ) -> User:
        """Stamp the first successful verification on an account.

        Leaves an existing timestamp untouched.

        Args:
            db: Async database session.
            user: Account that just proved control of its email.
            verified_at: Verification time.

        Returns:
            The same User.
        """
        if user.email_verified is None:
            user.email_verified = verified_at
            await db.flush()
        return user

    @staticmethod
    async def provision_admin(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        name: str | None = None,
    ) -> User:
        """Create or promote an admin account with a password.

        Separated from create() so the admin role can only be granted from
        explicit operator tooling, never from a request path.

        Args:
            db: Async database session.
            email: Admin email address.
            password_hash: bcrypt hash of the admin password.
            name: Display name for a newly created account.

        Returns:
            The admin User.
        """
        normalized = email.strip().lower()
        user = await UserRepository.get_by_email(db, normalized)
        if user is None:
            user = User(email=normalized, name=name)
            db.add(user)
        user.role = UserRole.ADMIN.value
        user.password_hash = password_hash
        await db.flush()
        await db.refresh(user)
        return user
