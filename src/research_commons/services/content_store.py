"""Minimal content store used by moderation workflows."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from research_commons.models import ContentItem, ContentType


class ContentStore(Protocol):
    """Operations the moderation core needs from content storage."""

    def fetch(self, content_type: ContentType, content_id: int) -> ContentItem | None: ...

    def delete(self, content_type: ContentType, content_id: int) -> bool: ...

    def restore(self, content_type: ContentType, content_id: int) -> bool: ...

    def create(
        self,
        *,
        content_type: ContentType,
        author_id: str,
        body: str,
        title: str | None = None,
        parent_id: int | None = None,
    ) -> ContentItem: ...


class SqlContentStore:
    """Content store over the ``content_item`` table.

    Mutations are flushed, not committed, so they share the caller's
    transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _get(self, content_type: ContentType, content_id: int) -> ContentItem | None:
        return (
            self.db.query(ContentItem)
            .filter(
                ContentItem.id == content_id,
                ContentItem.content_type == ContentType(content_type).value,
            )
            .first()
        )

    def fetch(self, content_type: ContentType, content_id: int) -> ContentItem | None:
        """Return the live item, or ``None`` if missing or deleted."""
        item = self._get(content_type, content_id)
        if item is None or item.deleted:
            return None
        return item

    def delete(self, content_type: ContentType, content_id: int) -> bool:
        """Soft-delete an item; returns False if it was not live."""
        item = self._get(content_type, content_id)
        if item is None or item.deleted:
            return False
        item.deleted = True
        self.db.flush()
        return True

    def restore(self, content_type: ContentType, content_id: int) -> bool:
        """Undo a soft delete; returns False if there was nothing to restore."""
        item = self._get(content_type, content_id)
        if item is None or not item.deleted:
            return False
        item.deleted = False
        self.db.flush()
        return True

    def create(
        self,
        *,
        content_type: ContentType,
        author_id: str,
        body: str,
        title: str | None = None,
        parent_id: int | None = None,
    ) -> ContentItem:
        """Persist a new item and return it with its id assigned."""
        item = ContentItem(
            content_type=ContentType(content_type).value,
            author_id=author_id,
            title=title,
            body=body,
            parent_id=parent_id,
        )
        self.db.add(item)
        self.db.flush()
        return item
