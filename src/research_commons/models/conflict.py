"""Models recording contradictions between field claims and external data."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class ConflictType(str, Enum):
    """Shape of the disagreement between two claims."""

    EXISTENCE = "existence"
    STATE = "state"
    ATTRIBUTE = "attribute"
    TEMPORAL = "temporal"


class Resolution(str, Enum):
    """Outcome label of a detected conflict."""

    FIELD_WINS = "field_wins"
    EXTERNAL_WINS = "external_wins"
    NEEDS_REVIEW = "needs_review"
    UNRESOLVED = "unresolved"


class ConflictRecord(Base):
    """One contradiction, stored with both claims exactly as submitted."""

    __tablename__ = "conflict_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conflict_type: Mapped[str] = mapped_column(String(16), nullable=False)
    conflict_detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    external_source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    external_claim: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    external_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    external_source_trust: Mapped[int | None] = mapped_column(Integer, nullable=True)

    field_content_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    field_content_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    field_claim: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    field_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    field_source_trust: Mapped[int | None] = mapped_column(Integer, nullable=True)

    resolution: Mapped[str] = mapped_column(String(16), nullable=False)
    suggested_action: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_taken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    location_name: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Human adjudication of needs_review / unresolved records.
    adjudicated_resolution: Mapped[str | None] = mapped_column(String(16), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
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
