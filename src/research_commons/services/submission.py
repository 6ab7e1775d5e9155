"""Content submission pipeline: rate limit, moderation gate, then storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from research_commons.core.errors import ContentBlockedError, ValidationError
from research_commons.core.settings import settings
from research_commons.models import ContentItem, ContentType
from research_commons.services.content_store import ContentStore, SqlContentStore
from research_commons.services.moderation_gate import GateDecision, ModerationGate
from research_commons.services.rate_limit import RateLimiter, get_rate_limiter
from research_commons.services.reports import ReportWorkflow

logger = logging.getLogger(__name__)

SYSTEM_REPORT_REASON = "Automatically flagged by content moderation"


@dataclass(frozen=True)
class SubmissionResult:
    """Stored content plus the warnings to show its author."""

    item: ContentItem
    warnings: tuple[str, ...]
    degraded: bool = False


class ContentSubmission:
    """Accepts new posts and comments on behalf of their authors."""

    def __init__(
        self,
        db: Session,
        *,
        gate: ModerationGate | None = None,
        rate_limiter: RateLimiter | None = None,
        content_store: ContentStore | None = None,
        reports: ReportWorkflow | None = None,
    ) -> None:
        self.db = db
        self.gate = gate or ModerationGate()
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.content_store = content_store or SqlContentStore(db)
        self.reports = reports or ReportWorkflow(db, content_store=self.content_store)

    async def submit(
        self,
        author_id: str,
        content_type: ContentType | str,
        body: str,
        title: str | None = None,
        parent_id: int | None = None,
        client_ip: str | None = None,
    ) -> SubmissionResult:
        """Screen and store a new content item.

        Raises:
            RateLimitExceeded: The author exhausted the ``write`` window.
            ValidationError: Title or body too short, or a comment without parent.
            ContentBlockedError: The gate refused the content and nothing was
                stored. A system report is filed unless the analyzer was down.
        """
        content_type = ContentType(content_type)
        self.rate_limiter.enforce(author_id, client_ip or "unknown", "write")

        body = (body or "").strip()
        title = title.strip() if title is not None else None
        if title is not None and len(title) < settings.min_title_length:
            raise ValidationError(
                f"Title must be at least {settings.min_title_length} characters"
            )
        if len(body) < settings.min_body_length:
            raise ValidationError(f"Content must be at least {settings.min_body_length} characters")
        if content_type is ContentType.COMMENT and parent_id is None:
            raise ValidationError("Comments must reference a parent post")
        if parent_id is not None and self.content_store.fetch(ContentType.POST, parent_id) is None:
            raise ValidationError("Parent post does not exist")

        text = f"{title}\n\n{body}" if title else body
        decision = await self.gate.evaluate(text, title)
        if decision.should_block:
            if decision.degraded:
                # Analyzer down: no signal to report.
                raise ContentBlockedError(decision.warnings)
            report_id = self._file_system_report(
                author_id,
                content_type,
                title,
                body,
                decision,
                client_ip,
            )
            raise ContentBlockedError(decision.warnings, report_id=report_id)

        item = self.content_store.create(
            content_type=content_type,
            author_id=author_id,
            body=body,
            title=title,
            parent_id=parent_id,
        )
        self.db.commit()
        self.db.refresh(item)
        if decision.warnings:
            logger.info("Content %s stored with %d warning(s)", item.id, len(decision.warnings))
        return SubmissionResult(
            item=item,
            warnings=decision.warnings,
            degraded=decision.degraded,
        )

    def _file_system_report(
        self,
        author_id: str,
        content_type: ContentType,
        title: str | None,
        body: str,
        decision: GateDecision,
        client_ip: str | None,
    ) -> int:
        moderation_data = {
            "signal": decision.signal,
            "moderation": decision.moderation_detail,
            "plagiarism": decision.plagiarism_detail,
            "warnings": list(decision.warnings),
        }
        report = self.reports.file(
            None,
            content_type,
            None,
            SYSTEM_REPORT_REASON,
            moderation_data=moderation_data,
            content_snapshot={"title": title, "content": body, "author_id": author_id},
            source_ip=client_ip,
        )
        logger.info("Blocked submission by %s; filed report %s", author_id, report.id)
        return report.id
