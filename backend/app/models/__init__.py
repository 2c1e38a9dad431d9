"""SQLAlchemy ORM models for the sign-in service.

All models are exported from this module for convenient imports:
    from app.models import User, VerificationCode, Session, ...

- user.py: User, UserRole
- verification_code.py: VerificationCode, CodeState
- rate_limit_counter.py: RateLimitCounter (composite PK)
- session.py: Session
"""

from app.models.base import Base, TimestampMixin
from app.models.rate_limit_counter import RateLimitCounter
from app.models.session import Session
from app.models.user import User, UserRole
from app.models.verification_code import CodeState, VerificationCode

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Accounts
    "User",
    "UserRole",
    # Sign-in
    "VerificationCode",
    "CodeState",
    "RateLimitCounter",
    "Session",
]
