"""Append-only audit trail of security-relevant events."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from research_commons.db.session import Base
from research_commons.db.time import utcnow


class AuditCategory(str, Enum):
    """Coarse grouping used to filter the audit trail."""

    AUTH = "auth"
    MODERATION = "moderation"
    ADMIN = "admin"
    DATA = "data"
    GENERAL = "general"


class AuditEvent(Base):
    """A single recorded event. Rows are never updated or deleted."""

    __tablename__ = "audit_event"
    __table_args__ = (
        Index("ix_audit_event_category", "category"),
        Index("ix_audit_event_actor_id", "actor_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    # No foreign key: events must survive the deletion of the actor.
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    source_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Attribute is metadata_ to avoid clashing with DeclarativeBase.metadata.
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class ImmutableAuditEventError(RuntimeError):
    """Raised when code attempts to rewrite or remove an audit event."""


@event.listens_for(AuditEvent, "before_update")
def _refuse_update(mapper: Any, connection: Any, target: AuditEvent) -> None:
    raise ImmutableAuditEventError("Audit events cannot be modified")


@event.listens_for(AuditEvent, "before_delete")
def _refuse_delete(mapper: Any, connection: Any, target: AuditEvent) -> None:
    raise ImmutableAuditEventError("Audit events cannot be deleted")
