"""Session model - server-side record behind the session cookie.

A session is created only after a successful code consumption (or an admin
password check), is bound to exactly one user, and is deleted on logout.
Renewal issues a new row; rows are never mutated in place.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.user import User


class Session(Base):
    """Active sign-in session.

    Attributes:
        id: UUID primary key.
        token_hash: SHA-256 hex digest of the opaque session identifier
            carried (signed) in the cookie. The identifier itself is never
            stored.
        user_id: Owning user.
        role: Role snapshot taken at issuance.
        created_at: Issue timestamp.
        expires_at: Hard expiry; the cookie max-age matches it.
    """

    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
        Index("idx_sessions_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="sessions")
