"""Models for appeals against moderation decisions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class AppealStatus(str, Enum):
    """Lifecycle states of an appeal."""

    PENDING = "pending"
    UNDER_JURY_REVIEW = "under_jury_review"
    UPHELD = "upheld"
    OVERTURNED = "overturned"
    # Jury tied or timed out; waiting for an administrator.
    ESCALATED = "escalated"


class Appeal(Base):
    """A request by an affected user to revisit a closed report."""

    __tablename__ = "appeal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # One appeal per report.
    report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("report.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    appellant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        nullable=False,
    )
    dispute_reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(24),
        nullable=False,
        default=AppealStatus.PENDING.value,
    )
    admin_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
