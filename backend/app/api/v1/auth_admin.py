"""Admin sign-in and maintenance endpoints.

Admins are provisioned out of band with a bcrypt password hash and sign in
here rather than through email codes.

Endpoints:
- POST /auth/admin/login: password sign-in for admin accounts
- GET /auth/admin/session: current admin session
- POST /auth/admin/retention-cleanup: run the retention jobs now
"""

import structlog
from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.api.deps import AdminUser, DbSession, Sessions
from app.api.v1.auth import SessionResponse, UserSummary
from app.core.auth import check_admin_password, set_auth_cookie
from app.core.config import settings
from app.core.errors import UnauthorizedError
from app.core.rate_limiting import limiter
from app.core.responses import OkResponse
from app.repositories.user_repository import UserRepository
from app.services.otp_codes import email_fingerprint
from app.services.retention_cleanup import run_all_cleanups

logger = structlog.get_logger()

router = APIRouter()

_INVALID_CREDENTIALS_MSG = "Invalid credentials"


class AdminLoginRequest(BaseModel):
    """Request body for POST /auth/admin/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class AdminLoginResponse(OkResponse):
    """Response body for POST /auth/admin/login."""

    user: UserSummary


class CleanupResponse(OkResponse):
    """Response body for POST /auth/admin/retention-cleanup."""

    verification_codes: int
    expired_sessions: int
    rate_limit_windows: int


@router.post("/login")
@limiter.limit(lambda: settings.rate_limit_admin_login)
async def admin_login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: AdminLoginRequest,
    response: Response,
    db: DbSession,
    sessions: Sessions,
) -> AdminLoginResponse:
    """Verify an admin email + password and issue the session cookie.

    Security: one bcrypt comparison runs on every path (DUMMY_HASH when the
    account is missing, not an admin, or has no password), and all failures
    share one generic 401.
    """
    user = await UserRepository.get_by_email(db, body.email)
    password_hash = user.password_hash if user is not None and user.is_admin else None

    if not check_admin_password(body.password, password_hash) or user is None:
        logger.info("admin.login_failed", email_fp=email_fingerprint(body.email))
        raise UnauthorizedError(_INVALID_CREDENTIALS_MSG)

    issued = await sessions.issue_for_user(db, user)
    await db.commit()

    set_auth_cookie(response, issued.token)
    return AdminLoginResponse(user=UserSummary.from_user(user))


@router.get("/session")
async def admin_session(admin: AdminUser) -> SessionResponse:
    """Return the signed-in admin. 401 without a session, 403 for non-admins."""
    return SessionResponse(user=UserSummary.from_user(admin))


@router.post("/retention-cleanup")
async def retention_cleanup(admin: AdminUser, db: DbSession) -> CleanupResponse:
    """Delete codes past retention, expired sessions, and stale counters."""
    result = await run_all_cleanups(db)
    await db.commit()
    logger.info("admin.retention_cleanup", admin_id=str(admin.id))
    return CleanupResponse(
        verification_codes=result.verification_codes,
        expired_sessions=result.expired_sessions,
        rate_limit_windows=result.rate_limit_windows,
    )
