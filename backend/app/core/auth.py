"""Authentication helpers for session JWTs, cookies, and admin passwords.

Shared utilities used by the session manager, auth endpoints, and
request dependencies.

Pipeline:
- create_session_jwt / decode_session_jwt: signed wrapper around the
  opaque server-side session identifier
- set_auth_cookie / clear_auth_cookie: httpOnly cookie management
- hash_token: one-way digest for storing opaque identifiers
- check_admin_password / DUMMY_HASH: timing-safe bcrypt check for the
  seed-provisioned admin path
"""

import hashlib
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt
from fastapi import Response

from app.core.config import settings

logger = logging.getLogger(__name__)

_JWT_ALGORITHM = "HS256"
_JWT_AUDIENCE = "helpinghand"

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents admin enumeration via response time differences.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


def session_ttl() -> timedelta:
    """Configured lifetime of a session credential."""
    return timedelta(hours=settings.session_ttl_hours)


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest of an opaque token.

    Args:
        token: Plain token value (never stored).

    Returns:
        64-character hex digest suitable for a unique column.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def create_session_jwt(
    *,
    user_id: str,
    session_id: str,
    role: str,
    issued_at: datetime,
    expires_at: datetime,
) -> str:
    """Create the signed cookie value for a session.

    The ``sid`` claim carries the opaque session identifier; the database
    stores only its hash. The signature lets forged cookies be rejected
    before any database lookup.

    Args:
        user_id: User UUID string for the sub claim.
        session_id: Opaque high-entropy session identifier.
        role: Role snapshot at issuance.
        issued_at: Issue time (iat claim).
        expires_at: Expiry time (exp claim), matches the session row.

    Returns:
        Encoded JWT string.
    """
    payload = {
        "sub": user_id,
        "sid": session_id,
        "role": role,
        "aud": _JWT_AUDIENCE,
        "iss": settings.auth_issuer,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(
        payload, settings.auth_secret.get_secret_value(), algorithm=_JWT_ALGORITHM
    )


def decode_session_jwt(token: str, *, verify_exp: bool = True) -> dict[str, Any]:
    """Decode and verify a session JWT.

    Args:
        token: Encoded JWT from the session cookie.
        verify_exp: Set False for logout, where an expired cookie must still
            identify the session row to delete.

    Returns:
        Decoded claims.

    Raises:
        jwt.InvalidTokenError: On bad signature, audience, issuer, or expiry.
    """
    return jwt.decode(
        token,
        settings.auth_secret.get_secret_value(),
        algorithms=[_JWT_ALGORITHM],
        audience=_JWT_AUDIENCE,
        issuer=settings.auth_issuer,
        options={"verify_exp": verify_exp, "require": ["sub", "sid", "exp", "iat"]},
    )


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly session cookie on response.

    Security: httpOnly prevents script access to the credential. Secure flag
    and SameSite are configured via settings for environment-appropriate
    security.

    Args:
        response: FastAPI response object.
        token: Session JWT string.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(session_ttl().total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_auth_cookie() for the browser to delete it.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )


def check_admin_password(password: str, password_hash: str | None) -> bool:
    """Compare a password against a stored bcrypt hash in constant time.

    Always performs one bcrypt comparison, against DUMMY_HASH when no hash
    is stored, so response time does not reveal whether the account exists.

    Args:
        password: Submitted plain-text password.
        password_hash: Stored bcrypt hash, or None when there is no account.

    Returns:
        True only when a stored hash exists and matches.
    """
    if password_hash is None:
        bcrypt.checkpw(password.encode(), DUMMY_HASH)
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        logger.warning("Stored admin password hash is malformed")
        return False


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)
