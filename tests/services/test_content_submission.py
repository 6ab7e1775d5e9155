# tests/services/test_content_submission.py
"""Tests for the content submission pipeline."""

import pytest
from sqlalchemy import select

from research_commons.core.errors import (
    ContentBlockedError,
    ExternalServiceError,
    RateLimitExceeded,
    ValidationError,
)
from research_commons.models import AuditEvent, ContentItem, ContentType, Report, ReportStatus
from research_commons.services.moderation_gate import (
    AnalyzerSignal,
    ModerationGate,
    ModerationSignal,
    StaticContentAnalyzer,
)
from research_commons.services.rate_limit import RateLimiter, RateLimitPolicy
from research_commons.services.submission import SYSTEM_REPORT_REASON, ContentSubmission

TOXIC = AnalyzerSignal(
    moderation=ModerationSignal(
        flagged=True,
        categories={"harassment": True},
        category_scores={"harassment": 0.95},
    )
)


class _BrokenAnalyzer:
    async def analyze(self, text, title=None):
        raise ExternalServiceError("down")


def _submission(db_session, signal=None, limiter=None, **gate_kwargs) -> ContentSubmission:
    return ContentSubmission(
        db_session,
        gate=ModerationGate(StaticContentAnalyzer(signal), **gate_kwargs),
        rate_limiter=limiter or RateLimiter(),
    )


@pytest.mark.asyncio
async def test_clean_submission_is_stored(db_session, author) -> None:
    result = await _submission(db_session).submit(
        author.id,
        ContentType.POST,
        "Soil salinity readings from the eastern plots.",
        title="Salinity readings",
    )

    stored = db_session.get(ContentItem, result.item.id)
    assert stored.author_id == author.id
    assert stored.title == "Salinity readings"
    assert result.warnings == ()


@pytest.mark.asyncio
async def test_blocked_submission_files_system_report_and_stores_nothing(
    db_session,
    author,
) -> None:
    with pytest.raises(ContentBlockedError) as exc_info:
        await _submission(db_session, TOXIC).submit(
            author.id,
            ContentType.POST,
            "Some hostile text aimed at another member.",
            title="Rant",
        )

    assert db_session.scalars(select(ContentItem)).all() == []
    report = db_session.get(Report, exc_info.value.report_id)
    assert report.reporter_id is None
    assert report.content_id is None
    assert report.status == ReportStatus.PENDING.value
    assert report.reason == SYSTEM_REPORT_REASON
    assert report.content_snapshot == {
        "title": "Rant",
        "content": "Some hostile text aimed at another member.",
        "author_id": author.id,
    }
    assert report.moderation_data["signal"]["moderation"]["flagged"] is True
    assert "Harassment" in exc_info.value.warnings[0]

    flagged = db_session.scalars(
        select(AuditEvent).where(AuditEvent.action == "content_flagged")
    ).all()
    assert len(flagged) == 1
    assert flagged[0].metadata_["system"] is True


@pytest.mark.asyncio
async def test_fail_closed_blocks_without_report(db_session, author) -> None:
    submission = ContentSubmission(
        db_session,
        gate=ModerationGate(_BrokenAnalyzer(), failure_mode="closed"),
        rate_limiter=RateLimiter(),
    )

    with pytest.raises(ContentBlockedError) as exc_info:
        await submission.submit(author.id, ContentType.POST, "Perfectly fine field notes.")

    assert exc_info.value.report_id is None
    assert db_session.scalars(select(Report)).all() == []


@pytest.mark.asyncio
async def test_fail_open_stores_with_warning(db_session, author) -> None:
    submission = ContentSubmission(
        db_session,
        gate=ModerationGate(_BrokenAnalyzer(), failure_mode="open"),
        rate_limiter=RateLimiter(),
    )

    result = await submission.submit(author.id, ContentType.POST, "Perfectly fine field notes.")

    assert result.degraded is True
    assert len(result.warnings) == 1
    assert db_session.get(ContentItem, result.item.id) is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("title", "body"),
    [("ab", "long enough body text"), (None, "too short")],
)
async def test_length_validation(db_session, author, title, body) -> None:
    with pytest.raises(ValidationError):
        await _submission(db_session).submit(author.id, ContentType.POST, body, title=title)


@pytest.mark.asyncio
async def test_comment_requires_existing_parent(db_session, author, post) -> None:
    submission = _submission(db_session)

    with pytest.raises(ValidationError):
        await submission.submit(author.id, ContentType.COMMENT, "A thoughtful reply here.")
    with pytest.raises(ValidationError):
        await submission.submit(
            author.id,
            ContentType.COMMENT,
            "A thoughtful reply here.",
            parent_id=post.id + 100,
        )

    result = await submission.submit(
        author.id,
        ContentType.COMMENT,
        "A thoughtful reply here.",
        parent_id=post.id,
    )
    assert result.item.parent_id == post.id


@pytest.mark.asyncio
async def test_write_rate_limit_is_enforced_before_the_gate(db_session, author, mocker) -> None:
    limiter = RateLimiter({"write": RateLimitPolicy(1, 60)})
    submission = _submission(db_session, limiter=limiter)
    await submission.submit(author.id, ContentType.POST, "First batch of observations.")

    spy = mocker.spy(submission.gate, "evaluate")
    with pytest.raises(RateLimitExceeded):
        await submission.submit(author.id, ContentType.POST, "Second batch of observations.")
    spy.assert_not_called()
