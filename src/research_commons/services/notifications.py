"""Fire-and-forget user notifications."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from research_commons.models import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Delivers a message to a user; delivery failures never reach the caller."""

    def notify(
        self,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None: ...


class SqlNotifier:
    """Notifier writing in-app notification rows."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def notify(
        self,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None:
        try:
            with self.db.begin_nested():
                self.db.add(
                    Notification(
                        user_id=user_id,
                        kind=kind,
                        title=title,
                        message=message,
                        link=link,
                    )
                )
                self.db.flush()
        except SQLAlchemyError as exc:
            logger.warning("Failed to notify user %s (%s): %s", user_id, kind, exc)
