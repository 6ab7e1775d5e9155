"""Models tracking moderation reports filed against content."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class ContentType(str, Enum):
    """Kinds of content a report can target."""

    POST = "post"
    COMMENT = "comment"


class ReportStatus(str, Enum):
    """Lifecycle states of a report; legal moves live in ``services.report_states``."""

    PENDING = "pending"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportAction(str, Enum):
    """Action a moderator may attach to a status change."""

    DELETE_CONTENT = "delete_content"
    WARN_USER = "warn_user"
    NONE = "none"


class Report(Base):
    """A moderation case against a post or comment."""

    __tablename__ = "report"
    __table_args__ = (
        # A reporter may hold at most one pending report per content item.
        Index(
            "uq_report_pending_reporter_content",
            "reporter_id",
            "content_type",
            "content_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_report_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_type: Mapped[str] = mapped_column(String(16), nullable=False)
    # NULL for system reports on submissions that were never stored.
    content_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # NULL for system-generated reports.
    reporter_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        nullable=True,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ReportStatus.PENDING.value,
    )
    # Copy of the flagged content at filing time; never rewritten.
    content_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    moderation_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    action_taken: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        nullable=True,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Set once a jury (or an administrator, after escalation) rules on an appeal.
    appeal_outcome: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
