"""Shared dependencies for API endpoints.

Session authentication and service construction. Every authenticated route
resolves the session cookie through SessionManager.resolve(): a signed JWT
whose opaque ``sid`` must map to a live server-side session row.

Services are provided through dependencies so tests can swap them with
app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import AdminRequiredError, UnauthorizedError
from app.models import User, UserRole
from app.services.code_issuer import CodeIssuer
from app.services.code_verifier import CodeVerifier
from app.services.session_manager import ResolvedSession, SessionManager

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_session_manager() -> SessionManager:
    """Provide the session manager."""
    return SessionManager()


def get_code_issuer() -> CodeIssuer:
    """Provide the code issuer (mail provider resolved from settings)."""
    return CodeIssuer()


def get_code_verifier(
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> CodeVerifier:
    """Provide the code verifier, sharing the request's session manager."""
    return CodeVerifier(session_manager=session_manager)


Sessions = Annotated[SessionManager, Depends(get_session_manager)]
Issuer = Annotated[CodeIssuer, Depends(get_code_issuer)]
Verifier = Annotated[CodeVerifier, Depends(get_code_verifier)]


async def get_current_session(
    request: Request,
    db: DbSession,
    sessions: Sessions,
) -> ResolvedSession:
    """Resolve the session behind the request's cookie.

    Security: every failure (missing cookie, bad signature, expired, logged
    out, unknown) yields the same generic 401.

    Args:
        request: HTTP request (injected by FastAPI).
        db: Database session (injected).
        sessions: Session manager (injected).

    Returns:
        ResolvedSession for the signed-in user.

    Raises:
        UnauthorizedError: 401 for any auth failure.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    resolved = await sessions.resolve(db, token)
    if resolved is None:
        raise UnauthorizedError()
    return resolved


CurrentSession = Annotated[ResolvedSession, Depends(get_current_session)]


def get_current_user(current: CurrentSession) -> User:
    """Get the signed-in User object."""
    return current.user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_admin(current: CurrentSession) -> User:
    """Gate a route to admin sessions.

    Both the role captured at issuance and the account's current role must
    be admin, so a demotion takes effect on the next request.

    Raises:
        AdminRequiredError: 403 when the session is not an admin session.
    """
    if current.session.role != UserRole.ADMIN or not current.user.is_admin:
        raise AdminRequiredError()
    return current.user


AdminUser = Annotated[User, Depends(require_admin)]
