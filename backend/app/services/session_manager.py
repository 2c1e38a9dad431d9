"""Session issuance, resolution, and logout.

A session is issued only after a successful code consumption (or the admin
password check). The cookie carries a signed JWT wrapping an opaque random
identifier; the database keeps only the identifier's hash, so a leaked
sessions table cannot be replayed.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

import jwt
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    create_session_jwt,
    decode_session_jwt,
    hash_token,
    session_ttl,
    utc_now,
)
from app.models.session import Session
from app.models.user import User
from app.repositories.session_repository import SessionRepository
from app.repositories.user_repository import UserRepository
from app.services.otp_codes import email_fingerprint, normalize_email

logger = structlog.get_logger()

_SESSION_ID_BYTES = 32


class LoginOutcome(StrEnum):
    """Whether sign-in resolved an existing account or created one."""

    EXISTING_USER = "existing_user"
    NEW_USER = "new_user"


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued session credential.

    Attributes:
        user: Account the session is bound to.
        token: Signed cookie value. Only ever returned to the client.
        expires_at: Session expiry.
        outcome: Existing or newly created account.
    """

    user: User
    token: str
    expires_at: datetime
    outcome: LoginOutcome


@dataclass(frozen=True)
class ResolvedSession:
    """A valid session and its user."""

    session: Session
    user: User


class SessionManager:
    """Creates, resolves, and invalidates sign-in sessions."""

    async def issue_session(
        self,
        db: AsyncSession,
        email: str,
        *,
        now: datetime | None = None,
    ) -> IssuedSession:
        """Resolve or create the account for an email and issue a session.

        New accounts are always members; this path never grants any other
        role. Runs inside the caller's transaction.

        Args:
            db: Async database session.
            email: Email whose code was just consumed.
            now: Reference time, for tests.

        Returns:
            IssuedSession.
        """
        now = now or utc_now()
        normalized = normalize_email(email)

        user = await UserRepository.get_by_email(db, normalized)
        outcome = LoginOutcome.EXISTING_USER
        if user is None:
            try:
                async with db.begin_nested():
                    user = await UserRepository.create(
                        db, email=normalized, email_verified=now
                    )
                outcome = LoginOutcome.NEW_USER
            except IntegrityError:
                # Created concurrently (e.g. signup); use that row.
                user = await UserRepository.get_by_email(db, normalized)
                if user is None:
                    raise
        await UserRepository.mark_email_verified(db, user, verified_at=now)

        return await self.issue_for_user(db, user, outcome=outcome, now=now)

    async def issue_for_user(
        self,
        db: AsyncSession,
        user: User,
        *,
        outcome: LoginOutcome = LoginOutcome.EXISTING_USER,
        now: datetime | None = None,
    ) -> IssuedSession:
        """Issue a session for an already-resolved account.

        Args:
            db: Async database session.
            user: Account to bind the session to.
            outcome: Reported login outcome.
            now: Reference time, for tests.

        Returns:
            IssuedSession.
        """
        now = now or utc_now()
        expires_at = now + session_ttl()
        session_id = secrets.token_urlsafe(_SESSION_ID_BYTES)

        await SessionRepository.create(
            db,
            token_hash=hash_token(session_id),
            user_id=user.id,
            role=user.role,
            created_at=now,
            expires_at=expires_at,
        )
        token = create_session_jwt(
            user_id=str(user.id),
            session_id=session_id,
            role=user.role,
            issued_at=now,
            expires_at=expires_at,
        )

        logger.info(
            "session.issued",
            user_id=str(user.id),
            role=user.role,
            outcome=outcome.value,
            email_fp=email_fingerprint(user.email),
        )
        return IssuedSession(
            user=user, token=token, expires_at=expires_at, outcome=outcome
        )

    async def resolve(
        self,
        db: AsyncSession,
        token: str | None,
        *,
        now: datetime | None = None,
    ) -> ResolvedSession | None:
        """Look up the session behind a cookie value.

        Forged or expired JWTs are rejected before any query. A valid JWT
        still needs a live session row whose owner matches ``sub``.

        Args:
            db: Async database session.
            token: Cookie value, if any.
            now: Reference time, for tests.

        Returns:
            ResolvedSession, or None when the credential is not valid.
        """
        if not token:
            return None
        try:
            payload = decode_session_jwt(token)
        except jwt.InvalidTokenError:
            return None

        session = await SessionRepository.get_by_token_hash(
            db, hash_token(payload["sid"])
        )
        if session is None:
            return None
        if session.expires_at <= (now or utc_now()):
            return None
        try:
            if session.user_id != uuid.UUID(str(payload["sub"])):
                return None
        except ValueError:
            return None
        return ResolvedSession(session=session, user=session.user)

    async def invalidate(self, db: AsyncSession, token: str | None) -> bool:
        """Delete the session behind a cookie value.

        Idempotent: missing, unknown, expired, or already-deleted
        credentials are accepted silently.

        Args:
            db: Async database session.
            token: Cookie value, if any.

        Returns:
            True if a session row was deleted.
        """
        if not token:
            return False
        try:
            payload = decode_session_jwt(token, verify_exp=False)
        except jwt.InvalidTokenError:
            return False

        deleted = await SessionRepository.delete_by_token_hash(
            db, hash_token(payload["sid"])
        )
        if deleted:
            logger.info("session.invalidated", user_id=payload["sub"])
        return deleted > 0
