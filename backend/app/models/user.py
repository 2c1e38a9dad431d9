"""User model - member, donor, volunteer, and admin accounts.

The profile and role columns are managed by the content/admin screens;
the auth flow only resolves users by email, creates members on first
sign-in, and stamps email_verified.
"""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.session import Session

_DEFAULT_UUID = text("gen_random_uuid()")


class UserRole(StrEnum):
    """Account roles. Only ``member`` is ever assigned by self-service sign-in."""

    MEMBER = "member"
    DONOR = "donor"
    VOLUNTEER = "volunteer"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """User account.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored lowercase.
        name: Display name (from signup form, optional).
        phone: Contact phone number (optional).
        role: One of UserRole. Defaults to member.
        email_verified: Timestamp of the first successful code verification.
            NULL = never verified.
        password_hash: bcrypt hash. Only set for seed-provisioned admins.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('member', 'donor', 'volunteer', 'admin')",
            name="ck_users_role",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'member'"),
        default=UserRole.MEMBER.value,
    )
    email_verified: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Relationships
    sessions: Mapped[list["Session"]] = relationship(
        "Session",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        """Whether the account carries the admin role."""
        return self.role == UserRole.ADMIN

    def to_dict(self) -> dict:
        """Public summary returned by the auth endpoints."""
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
        }
