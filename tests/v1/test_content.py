# tests/v1/test_content.py
"""Tests for content submission endpoints."""

import pytest
from fastapi import status

from research_commons.api.v1.dependencies import get_moderation_gate
from research_commons.models import Report
from research_commons.services.moderation_gate import (
    AnalyzerSignal,
    ModerationGate,
    PlagiarismSignal,
    StaticContentAnalyzer,
)


@pytest.fixture()
def plagiarism_gate(app):
    """Route submissions through a gate that sees copied text."""
    signal = AnalyzerSignal(
        plagiarism=PlagiarismSignal(
            is_plagiarized=True,
            similarity_score=0.93,
            sources=["https://journal.example/article/42"],
        )
    )
    app.dependency_overrides[get_moderation_gate] = lambda: ModerationGate(
        StaticContentAnalyzer(signal),
        plagiarism_block_threshold=0.8,
    )
    yield
    app.dependency_overrides.pop(get_moderation_gate, None)


def test_submit_post(client, author, auth_headers) -> None:
    response = client.post(
        "/api/v1/content",
        json={"title": "Bridge survey", "body": "Load tests on the eastern bridge deck."},
        headers=auth_headers(author),
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["content"]["author_id"] == author.id
    assert data["content"]["content_type"] == "post"
    assert data["warnings"] == []
    assert data["degraded"] is False


def test_submit_comment_on_post(client, reporter, post, auth_headers) -> None:
    response = client.post(
        "/api/v1/content",
        json={
            "content_type": "comment",
            "body": "Which gauge did you use for the wells?",
            "parent_id": post.id,
        },
        headers=auth_headers(reporter),
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["content"]["parent_id"] == post.id


def test_short_body_is_rejected(client, author, auth_headers) -> None:
    response = client.post(
        "/api/v1/content",
        json={"body": "tiny"},
        headers=auth_headers(author),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.usefixtures("plagiarism_gate")
def test_blocked_submission_returns_warnings_and_report(
    client, author, auth_headers, db_session
) -> None:
    response = client.post(
        "/api/v1/content",
        json={"title": "Survey", "body": "Text lifted from a published article."},
        headers=auth_headers(author),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    data = response.json()
    assert data["warnings"]
    assert "93%" in data["warnings"][0]
    report = db_session.get(Report, data["report_id"])
    assert report is not None
    assert report.reporter_id is None
