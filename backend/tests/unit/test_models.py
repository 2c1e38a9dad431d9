"""Tests for model helpers that do not need a database."""

import uuid
from datetime import UTC, datetime, timedelta

from app.models import CodeState, User, UserRole, VerificationCode

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _code(**overrides) -> VerificationCode:
    values = {
        "id": uuid.uuid4(),
        "email": "alice@example.org",
        "code_hash": "f" * 64,
        "created_at": _NOW,
        "expires_at": _NOW + timedelta(minutes=10),
        "consumed_at": None,
        "superseded_at": None,
        "attempt_count": 0,
    }
    values.update(overrides)
    return VerificationCode(**values)


class TestCodeState:
    """Derived lifecycle state of a code."""

    def test_open_code_before_expiry_is_active(self):
        assert _code().state_at(_NOW) == CodeState.ACTIVE

    def test_expiry_boundary_is_expired(self):
        """A code is no longer usable at exactly expires_at."""
        code = _code()
        assert code.state_at(code.expires_at) == CodeState.EXPIRED

    def test_consumed_wins_over_expiry(self):
        code = _code(consumed_at=_NOW + timedelta(minutes=1))
        assert code.state_at(_NOW + timedelta(hours=1)) == CodeState.CONSUMED

    def test_superseded(self):
        code = _code(superseded_at=_NOW + timedelta(minutes=1))
        assert code.state_at(_NOW + timedelta(minutes=2)) == CodeState.SUPERSEDED


class TestVerificationCodeToDict:
    def test_never_includes_hash(self):
        data = _code().to_dict()
        assert "code_hash" not in data
        assert "f" * 64 not in data.values()
        assert data["attempt_count"] == 0


class TestUser:
    def test_is_admin(self):
        assert User(email="a@example.org", role=UserRole.ADMIN).is_admin is True
        assert User(email="m@example.org", role=UserRole.MEMBER).is_admin is False

    def test_to_dict_is_public_summary(self):
        user = User(
            id=uuid.uuid4(),
            email="a@example.org",
            name="Alice",
            role=UserRole.MEMBER,
            password_hash="secret-hash",  # nosec B106
        )
        data = user.to_dict()
        assert data["email"] == "a@example.org"
        assert data["role"] == "member"
        assert "password_hash" not in data
