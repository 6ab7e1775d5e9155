"""Automated pre-publication moderation gate.

The gate asks a ``ContentAnalyzer`` for a raw signal (toxicity categories and
plagiarism similarity) and turns it into an allow/block decision with
human-readable warnings. The decision depends only on the signal, so the same
analyzer output always yields the same decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from research_commons.core.errors import ExternalServiceError
from research_commons.core.settings import settings

logger = logging.getLogger(__name__)

FAIL_OPEN_WARNING = (
    "Automated moderation is temporarily unavailable. "
    "Your content will be reviewed by a moderator."
)
FAIL_CLOSED_WARNING = (
    "Automated moderation is temporarily unavailable. "
    "Please try submitting again in a few minutes."
)
GENERIC_MODERATION_WARNING = "Your content may violate community guidelines."


class ModerationSignal(BaseModel):
    """Toxicity classification returned by the analyzer."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    flagged: bool = False
    categories: dict[str, bool] = Field(default_factory=dict)
    category_scores: dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("category_scores", "categoryScores"),
    )
    details: list[str] = Field(default_factory=list)


class PlagiarismSignal(BaseModel):
    """Similarity check returned by the analyzer."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_plagiarized: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_plagiarized", "isPlagiarized"),
    )
    similarity_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("similarity_score", "similarityScore"),
    )
    sources: list[str] = Field(default_factory=list)
    details: str | None = None


class AnalyzerSignal(BaseModel):
    """Complete analyzer answer for one piece of text."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    should_block: bool = Field(
        default=False,
        validation_alias=AliasChoices("should_block", "shouldBlock"),
    )
    warnings: list[str] = Field(default_factory=list)
    moderation: ModerationSignal = Field(default_factory=ModerationSignal)
    plagiarism: PlagiarismSignal = Field(default_factory=PlagiarismSignal)


class ContentAnalyzer(Protocol):
    """External service classifying text."""

    async def analyze(self, text: str, title: str | None = None) -> AnalyzerSignal: ...


class StaticContentAnalyzer:
    """Analyzer used when no external service is configured.

    Returns a clean signal, or a fixed one when constructed with ``signal``.
    """

    def __init__(self, signal: AnalyzerSignal | None = None) -> None:
        self._signal = signal or AnalyzerSignal(
            moderation=ModerationSignal(
                details=["No moderation service configured - content allowed by default"],
            ),
        )

    async def analyze(self, text: str, title: str | None = None) -> AnalyzerSignal:
        return self._signal


class HttpContentAnalyzer:
    """Analyzer calling a remote classification endpoint over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def analyze(self, text: str, title: str | None = None) -> AnalyzerSignal:
        """POST the text to the analyzer and parse its signal.

        Raises:
            ExternalServiceError: On timeout, transport failure, non-2xx
                status or a payload that does not match the signal schema.
        """
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.url,
                    json={"text": text, "title": title},
                    headers=self._headers(),
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise ExternalServiceError(f"Content analyzer timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Content analyzer request failed: {exc}") from exc
        except ValueError as exc:
            raise ExternalServiceError("Content analyzer returned invalid JSON") from exc

        try:
            return AnalyzerSignal.model_validate(payload)
        except PydanticValidationError as exc:
            raise ExternalServiceError("Content analyzer returned a malformed signal") from exc


def build_default_analyzer() -> ContentAnalyzer:
    """Return the analyzer selected by configuration."""
    if settings.analyzer_url:
        return HttpContentAnalyzer(
            settings.analyzer_url,
            api_key=settings.analyzer_api_key,
            timeout_seconds=settings.analyzer_timeout_seconds,
        )
    return StaticContentAnalyzer()


@dataclass(frozen=True)
class GateDecision:
    """Decision returned by :class:`ModerationGate`.

    Attributes:
        should_block: Whether the content must not be stored.
        warnings: Messages to surface to the author.
        moderation_detail: Flagged category names and the highest score.
        plagiarism_detail: Similarity score and matched sources.
        degraded: True when the analyzer failed and a fallback decided.
        signal: Raw analyzer output, kept for the moderation record.
    """

    should_block: bool
    warnings: tuple[str, ...] = ()
    moderation_detail: dict[str, Any] = field(default_factory=dict)
    plagiarism_detail: dict[str, Any] = field(default_factory=dict)
    degraded: bool = False
    signal: dict[str, Any] | None = None


def _humanize_category(category: str) -> str:
    return " / ".join(part.capitalize() for part in category.split("/"))


def moderation_warning(flagged_categories: list[str]) -> str:
    """Return the author-facing warning for flagged categories."""
    if not flagged_categories:
        return GENERIC_MODERATION_WARNING
    names = ", ".join(_humanize_category(category) for category in flagged_categories)
    return (
        f"Your content was flagged for: {names}. Please review our community "
        "guidelines and ensure your content is respectful and appropriate."
    )


def plagiarism_warning(similarity_score: float) -> str:
    """Return the author-facing warning for a similarity match."""
    percent = round(similarity_score * 100)
    return (
        f"Potential plagiarism detected ({percent}% similarity). "
        "Please ensure you properly cite all sources."
    )


class ModerationGate:
    """Turns analyzer signals into block/allow decisions."""

    def __init__(
        self,
        analyzer: ContentAnalyzer | None = None,
        *,
        block_threshold: float | None = None,
        warn_threshold: float | None = None,
        plagiarism_block_threshold: float | None = None,
        failure_mode: Literal["open", "closed"] | None = None,
    ) -> None:
        self.analyzer = analyzer or build_default_analyzer()
        self.block_threshold = (
            settings.moderation_block_threshold if block_threshold is None else block_threshold
        )
        self.warn_threshold = (
            settings.moderation_warn_threshold if warn_threshold is None else warn_threshold
        )
        self.plagiarism_block_threshold = (
            settings.plagiarism_block_threshold
            if plagiarism_block_threshold is None
            else plagiarism_block_threshold
        )
        mode = failure_mode or settings.analyzer_failure_mode
        if mode not in ("open", "closed"):
            raise ValueError(f"Unknown analyzer failure mode: {mode}")
        self.failure_mode = mode

    async def evaluate(self, content_text: str, title: str | None = None) -> GateDecision:
        """Classify ``content_text`` and decide whether it may be stored."""
        try:
            signal = await self.analyzer.analyze(content_text, title)
        except ExternalServiceError as exc:
            return self._fallback(exc)
        return self.decide(signal)

    def decide(self, signal: AnalyzerSignal) -> GateDecision:
        """Apply the block/warn policy to an analyzer signal."""
        moderation = signal.moderation
        plagiarism = signal.plagiarism

        flagged_categories = [name for name, hit in moderation.categories.items() if hit]
        if not flagged_categories and moderation.flagged:
            flagged_categories = list(moderation.details)
        if moderation.category_scores:
            severity = max(moderation.category_scores.values())
        else:
            severity = 1.0 if moderation.flagged else 0.0

        plagiarism_blocked = plagiarism.similarity_score > self.plagiarism_block_threshold
        should_block = signal.should_block or severity >= self.block_threshold or plagiarism_blocked

        warnings: list[str] = []
        if moderation.flagged or severity >= self.warn_threshold:
            warnings.append(moderation_warning(flagged_categories))
        if plagiarism.is_plagiarized or plagiarism_blocked:
            warnings.append(plagiarism_warning(plagiarism.similarity_score))
        for extra in signal.warnings:
            if extra and extra not in warnings:
                warnings.append(extra)

        return GateDecision(
            should_block=should_block,
            warnings=tuple(warnings),
            moderation_detail={
                "flagged": moderation.flagged,
                "categories": flagged_categories,
                "max_score": severity,
            },
            plagiarism_detail={
                "is_plagiarized": plagiarism.is_plagiarized,
                "similarity_score": plagiarism.similarity_score,
                "sources": list(plagiarism.sources),
            },
            signal=signal.model_dump(),
        )

    def _fallback(self, exc: ExternalServiceError) -> GateDecision:
        if self.failure_mode == "closed":
            logger.error("Content analyzer unavailable, blocking submission: %s", exc)
            return GateDecision(
                should_block=True,
                warnings=(FAIL_CLOSED_WARNING,),
                degraded=True,
            )
        logger.warning("Content analyzer unavailable, allowing submission: %s", exc)
        return GateDecision(
            should_block=False,
            warnings=(FAIL_OPEN_WARNING,),
            degraded=True,
        )
