# tests/services/test_moderation_gate.py
"""Tests for the automated moderation gate and its analyzers."""

import json

import httpx
import pytest

from research_commons.core.errors import ExternalServiceError
from research_commons.services.moderation_gate import (
    FAIL_CLOSED_WARNING,
    FAIL_OPEN_WARNING,
    AnalyzerSignal,
    HttpContentAnalyzer,
    ModerationGate,
    ModerationSignal,
    PlagiarismSignal,
    StaticContentAnalyzer,
    moderation_warning,
    plagiarism_warning,
)


class _BrokenAnalyzer:
    async def analyze(self, text, title=None):
        raise ExternalServiceError("connection refused")


def _gate(signal: AnalyzerSignal | None = None, **kwargs) -> ModerationGate:
    return ModerationGate(
        StaticContentAnalyzer(signal),
        block_threshold=0.7,
        warn_threshold=0.4,
        plagiarism_block_threshold=0.8,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_clean_content_passes_without_warnings() -> None:
    decision = await _gate().evaluate("A careful survey of irrigation channels.")

    assert decision.should_block is False
    assert decision.warnings == ()
    assert decision.degraded is False


@pytest.mark.asyncio
async def test_high_severity_blocks_with_category_warning() -> None:
    signal = AnalyzerSignal(
        moderation=ModerationSignal(
            flagged=True,
            categories={"hate/threatening": True, "violence": False},
            category_scores={"hate/threatening": 0.91, "violence": 0.2},
        )
    )

    decision = await _gate(signal).evaluate("text")

    assert decision.should_block is True
    assert decision.warnings == (moderation_warning(["hate/threatening"]),)
    assert "Hate / Threatening" in decision.warnings[0]
    assert decision.moderation_detail["max_score"] == pytest.approx(0.91)
    assert decision.signal["moderation"]["flagged"] is True


@pytest.mark.asyncio
async def test_moderate_severity_warns_but_allows() -> None:
    signal = AnalyzerSignal(
        moderation=ModerationSignal(category_scores={"harassment": 0.5}),
    )

    decision = await _gate(signal).evaluate("text")

    assert decision.should_block is False
    assert len(decision.warnings) == 1


@pytest.mark.asyncio
async def test_plagiarism_over_threshold_blocks() -> None:
    signal = AnalyzerSignal(
        plagiarism=PlagiarismSignal(is_plagiarized=True, similarity_score=0.85),
    )

    decision = await _gate(signal).evaluate("text")

    assert decision.should_block is True
    assert decision.warnings == (plagiarism_warning(0.85),)
    assert "85% similarity" in decision.warnings[0]


@pytest.mark.asyncio
async def test_plagiarism_below_threshold_only_warns() -> None:
    signal = AnalyzerSignal(
        plagiarism=PlagiarismSignal(is_plagiarized=True, similarity_score=0.6),
    )

    decision = await _gate(signal).evaluate("text")

    assert decision.should_block is False
    assert decision.warnings == (plagiarism_warning(0.6),)


def test_decision_is_deterministic_for_same_signal() -> None:
    signal = AnalyzerSignal(moderation=ModerationSignal(category_scores={"spam": 0.72}))
    gate = _gate()

    assert gate.decide(signal) == gate.decide(signal)


@pytest.mark.asyncio
async def test_analyzer_failure_fails_open_by_default(caplog) -> None:
    gate = ModerationGate(_BrokenAnalyzer(), failure_mode="open")

    decision = await gate.evaluate("text")

    assert decision.should_block is False
    assert decision.degraded is True
    assert decision.warnings == (FAIL_OPEN_WARNING,)
    assert "Content analyzer unavailable" in caplog.text


@pytest.mark.asyncio
async def test_analyzer_failure_can_fail_closed() -> None:
    gate = ModerationGate(_BrokenAnalyzer(), failure_mode="closed")

    decision = await gate.evaluate("text")

    assert decision.should_block is True
    assert decision.degraded is True
    assert decision.warnings == (FAIL_CLOSED_WARNING,)


def test_unknown_failure_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        ModerationGate(StaticContentAnalyzer(), failure_mode="sideways")


@pytest.mark.asyncio
async def test_http_analyzer_parses_camel_case_payload() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={
                "shouldBlock": False,
                "moderation": {"flagged": False, "categoryScores": {"spam": 0.1}},
                "plagiarism": {"isPlagiarized": False, "similarityScore": 0.05},
            },
        )

    analyzer = HttpContentAnalyzer(
        "https://analyzer.test/v1/analyze",
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )

    signal = await analyzer.analyze("body text", "Title")

    assert seen["body"] == {"text": "body text", "title": "Title"}
    assert seen["auth"] == "Bearer secret"
    assert signal.moderation.category_scores == {"spam": 0.1}
    assert signal.plagiarism.similarity_score == pytest.approx(0.05)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"plagiarism": {"similarityScore": 7}}),
    ],
)
async def test_http_analyzer_errors_become_external_service_errors(response) -> None:
    analyzer = HttpContentAnalyzer(
        "https://analyzer.test/v1/analyze",
        transport=httpx.MockTransport(lambda request: response),
    )

    with pytest.raises(ExternalServiceError):
        await analyzer.analyze("body text")


@pytest.mark.asyncio
async def test_http_analyzer_timeout_falls_back_through_gate() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    analyzer = HttpContentAnalyzer(
        "https://analyzer.test/v1/analyze",
        transport=httpx.MockTransport(handler),
    )
    gate = ModerationGate(analyzer, failure_mode="open")

    decision = await gate.evaluate("body text")

    assert decision.degraded is True
    assert decision.should_block is False
