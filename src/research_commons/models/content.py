"""SQLAlchemy models for the minimal content store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class ContentItem(Base):
    """A post or comment as seen by the moderation core.

    Deletion is a soft flag so an overturned appeal can restore the item.
    """

    __tablename__ = "content_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # "post" or "comment".
    content_type: Mapped[str] = mapped_column(String(16), nullable=False)
    author_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_account.id"),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    # Comments point at their post; top-level posts have parent_id = NULL.
    parent_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
