"""Audit trail writer for security-relevant events.

Every write happens inside a savepoint so a failing insert never poisons the
caller's transaction; failures are logged and reported as ``None``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from research_commons.models import AuditCategory, AuditEvent

logger = logging.getLogger(__name__)

_AUTH_PREFIXES = ("login", "logout", "password", "auth")
_MODERATION_PREFIXES = ("content", "appeal", "jury", "report", "conflict")
_ADMIN_PREFIXES = ("admin", "user_")


def infer_category(action: str) -> AuditCategory:
    """Return the category implied by an action name."""
    if action.startswith(_AUTH_PREFIXES) or action == "signup":
        return AuditCategory.AUTH
    if action.startswith(_MODERATION_PREFIXES) or action == "role_changed":
        return AuditCategory.MODERATION
    if action.startswith(_ADMIN_PREFIXES):
        return AuditCategory.ADMIN
    return AuditCategory.GENERAL


class AuditLog:
    """Append-only recorder bound to a database session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        action: str,
        actor_id: str | None,
        metadata: Mapping[str, Any] | None = None,
        *,
        category: AuditCategory | str | None = None,
        source_ip: str | None = None,
        user_agent: str | None = None,
    ) -> int | None:
        """Insert an audit event and return its id.

        The row is flushed but not committed; the caller's commit makes it
        durable. Returns ``None`` when the insert fails. An unknown
        ``category`` falls back to the one inferred from ``action``.
        """
        resolved = infer_category(action)
        if category:
            try:
                resolved = AuditCategory(category)
            except ValueError:
                logger.warning(
                    "Unknown audit category %r for %s; using %s",
                    category,
                    action,
                    resolved.value,
                )
        event = AuditEvent(
            action=action,
            category=resolved.value,
            actor_id=actor_id,
            source_ip=source_ip,
            user_agent=user_agent,
            metadata_=dict(metadata or {}),
        )
        try:
            with self.db.begin_nested():
                self.db.add(event)
                self.db.flush()
        except SQLAlchemyError as exc:
            logger.warning("Failed to record audit event %s: %s", action, exc)
            return None
        return event.id

    def record_auth_event(
        self,
        action: str,
        actor_id: str | None,
        metadata: Mapping[str, Any] | None = None,
        **context: Any,
    ) -> int | None:
        """Record an authentication event."""
        return self.record(action, actor_id, metadata, category=AuditCategory.AUTH, **context)

    def record_moderation_event(
        self,
        action: str,
        actor_id: str | None,
        metadata: Mapping[str, Any],
        **context: Any,
    ) -> int | None:
        """Record a moderation event."""
        return self.record(
            action,
            actor_id,
            metadata,
            category=AuditCategory.MODERATION,
            **context,
        )

    def list_events(
        self,
        *,
        category: AuditCategory | str | None = None,
        action: str | None = None,
        actor_id: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Return events newest first, optionally filtered."""
        stmt = select(AuditEvent)
        if category is not None:
            stmt = stmt.where(AuditEvent.category == AuditCategory(category).value)
        if action is not None:
            stmt = stmt.where(AuditEvent.action == action)
        if actor_id is not None:
            stmt = stmt.where(AuditEvent.actor_id == actor_id)
        if since is not None:
            stmt = stmt.where(AuditEvent.created_at >= since)
        stmt = stmt.order_by(AuditEvent.id.desc()).limit(limit).offset(offset)
        return list(self.db.scalars(stmt))
