"""Verification code model - email one-time sign-in codes.

Only a keyed hash of each code is stored. At most one open row
(unconsumed and not superseded) exists per email, enforced by a partial
unique index. Rows are never deleted by the sign-in flow; the retention
cleanup job removes them after the retention window.
"""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Index, Integer, String, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class CodeState(StrEnum):
    """Lifecycle state of a single code.

    ACTIVE is the only non-terminal state. A new issuance for the same
    email moves the previous ACTIVE code to SUPERSEDED.
    """

    ACTIVE = "active"
    CONSUMED = "consumed"
    EXPIRED = "expired"
    SUPERSEDED = "superseded"


class VerificationCode(Base):
    """One-time code issued to an email address.

    Attributes:
        id: UUID primary key.
        email: Normalized (trimmed, lowercase) email address.
        code_hash: HMAC-SHA-256 hex digest of the code. Never exposed.
        created_at: Issue timestamp.
        expires_at: created_at + configured TTL.
        consumed_at: Set exactly once, by the conditional update that wins
            verification. NULL while unconsumed.
        superseded_at: Set when a newer code is issued for the same email.
        attempt_count: Failed verification attempts against this code.
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        Index(
            "uq_verification_codes_open_email",
            "email",
            unique=True,
            postgresql_where=text("consumed_at IS NULL AND superseded_at IS NULL"),
        ),
        Index("idx_verification_codes_email_created", "email", "created_at"),
        Index("idx_verification_codes_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )
    consumed_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    superseded_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    attempt_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )

    def state_at(self, now: datetime) -> CodeState:
        """Derive the lifecycle state at a point in time.

        Args:
            now: Reference time (aware UTC).

        Returns:
            CodeState for this code.
        """
        if self.consumed_at is not None:
            return CodeState.CONSUMED
        if self.superseded_at is not None:
            return CodeState.SUPERSEDED
        if self.expires_at <= now:
            return CodeState.EXPIRED
        return CodeState.ACTIVE

    def to_dict(self) -> dict:
        """Operator-facing view of the record. Never includes code_hash."""
        return {
            "id": str(self.id),
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "consumed_at": self.consumed_at.isoformat() if self.consumed_at else None,
            "superseded_at": (
                self.superseded_at.isoformat() if self.superseded_at else None
            ),
            "attempt_count": self.attempt_count,
        }

    def __repr__(self) -> str:
        return f"<VerificationCode {self.id} email={self.email}>"
