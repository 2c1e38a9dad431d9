"""Tests for auth dependencies.

Session resolution is mocked here; resolution against real rows is covered
in test_session_manager.py.
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.requests import Request

from app.api.deps import get_current_session, get_current_user, require_admin
from app.core.config import settings
from app.core.errors import AdminRequiredError, UnauthorizedError
from app.models import User, UserRole
from app.models.session import Session
from app.services.session_manager import ResolvedSession


def _resolved(*, session_role: str, user_role: str) -> ResolvedSession:
    user = User(id=uuid.uuid4(), email="someone@example.org", role=user_role)
    session = Session(user_id=user.id, role=session_role)
    return ResolvedSession(session=session, user=user)


def _request(cookie: str | None) -> Request:
    headers = []
    if cookie is not None:
        headers.append(
            (b"cookie", f"{settings.auth_cookie_name}={cookie}".encode())
        )
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


class TestGetCurrentSession:
    @pytest.mark.asyncio
    async def test_passes_cookie_to_session_manager(self):
        resolved = _resolved(session_role="member", user_role="member")
        sessions = MagicMock()
        sessions.resolve = AsyncMock(return_value=resolved)
        db = MagicMock()

        result = await get_current_session(_request("cookie-value"), db, sessions)

        assert result is resolved
        sessions.resolve.assert_awaited_once_with(db, "cookie-value")

    @pytest.mark.asyncio
    async def test_unresolvable_cookie_is_401(self):
        sessions = MagicMock()
        sessions.resolve = AsyncMock(return_value=None)

        with pytest.raises(UnauthorizedError):
            await get_current_session(_request(None), MagicMock(), sessions)


class TestGetCurrentUser:
    def test_returns_session_user(self):
        resolved = _resolved(session_role="member", user_role="member")
        assert get_current_user(resolved) is resolved.user


class TestRequireAdmin:
    """Admin gate on both the session snapshot and the live role."""

    def test_admin_session_passes(self):
        resolved = _resolved(session_role=UserRole.ADMIN, user_role=UserRole.ADMIN)
        assert require_admin(resolved) is resolved.user

    def test_member_session_is_rejected(self):
        resolved = _resolved(session_role=UserRole.MEMBER, user_role=UserRole.MEMBER)
        with pytest.raises(AdminRequiredError):
            require_admin(resolved)

    def test_demoted_user_is_rejected(self):
        """An admin session stops working once the account loses the role."""
        resolved = _resolved(session_role=UserRole.ADMIN, user_role=UserRole.MEMBER)
        with pytest.raises(AdminRequiredError):
            require_admin(resolved)

    def test_member_session_of_promoted_user_is_rejected(self):
        """Promotion does not upgrade sessions issued before it."""
        resolved = _resolved(session_role=UserRole.MEMBER, user_role=UserRole.ADMIN)
        with pytest.raises(AdminRequiredError):
            require_admin(resolved)
