"""Rate limit counter model - fixed-window request counts.

One row per (scope, identity, window_start). Rows for elapsed windows are
dead weight and are removed by the retention cleanup job.
"""

from datetime import datetime

from sqlalchemy import Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class RateLimitCounter(Base):
    """Request count for one identity within one window.

    No id column. The natural key is the composite primary key.

    Attributes:
        scope: Limited action (e.g. ``"issue"``, ``"verify"``).
        identity: Normalized email or client identifier.
        window_start: Start of the fixed window (aligned to window length).
        count: Requests counted so far. Never exceeds the configured
            ceiling; the increment is conditional.
    """

    __tablename__ = "rate_limit_counters"

    scope: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        primary_key=True,
    )
    identity: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        primary_key=True,
    )
    window_start: Mapped[datetime] = mapped_column(
        nullable=False,
        primary_key=True,
    )
    count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
    )
