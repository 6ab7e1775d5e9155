"""Five-dimension trust scoring for research content.

Each dimension is computed from its own inputs only; nothing is weighted
against anything else and no composite score is stored.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Final

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from research_commons.core.errors import AuthorizationError, ValidationError
from research_commons.core.settings import settings
from research_commons.db.time import as_utc, utcnow
from research_commons.models import ConflictPhase, ContentType, ProximityType, TrustProfile
from research_commons.services.audit import AuditLog
from research_commons.services.identity import RoleDirectory
from research_commons.services.permissions import Operation, is_allowed

_PROXIMITY_BASE: Final[dict[ProximityType, int]] = {
    ProximityType.ON_SITE: 90,
    ProximityType.REMOTE: 60,
    ProximityType.INFERRED: 30,
}
_VOLATILE_PHASES: Final = frozenset({ConflictPhase.ACTIVE_CONFLICT, ConflictPhase.DE_ESCALATION})
_MAX_COUNTED_CORROBORATIONS: Final = 3
_MAX_COUNTED_CONTRADICTIONS: Final = 3


@dataclass(frozen=True)
class TrustSignals:
    """Raw provenance facts about one content item."""

    # T1
    author_known: bool = False
    institution: str | None = None
    verified_expert: bool = False
    accepted_contributions: int = 0
    retractions: int = 0
    # T2
    method_described: bool = False
    reproducible: bool = False
    data_available: bool = False
    # T3
    proximity_type: ProximityType = ProximityType.INFERRED
    firsthand: bool = False
    # T4
    data_timestamp: datetime | None = None
    conflict_phase: ConflictPhase | None = None
    volatile: bool = False
    # T5
    corroborating_count: int = 0
    contradicting_count: int = 0
    peer_reviewed: bool = False
    citation_count: int = 0

    def __post_init__(self) -> None:
        counts = {
            "accepted_contributions": self.accepted_contributions,
            "retractions": self.retractions,
            "corroborating_count": self.corroborating_count,
            "contradicting_count": self.contradicting_count,
            "citation_count": self.citation_count,
        }
        negative = [name for name, value in counts.items() if value < 0]
        if negative:
            raise ValidationError(f"Counts cannot be negative: {', '.join(negative)}")


@dataclass(frozen=True)
class TrustScores:
    """Computed dimension values, ready to persist."""

    source: int
    method: int
    proximity: int
    temporal: int
    validation: int
    conflict_phase: ConflictPhase | None
    time_sensitive: bool
    summary: str


def _clamp(value: float) -> int:
    return max(0, min(100, round(value)))


def phase_for(
    moment: datetime | date,
    timeline: list[tuple[date, str]] | None = None,
) -> ConflictPhase:
    """Return the conflict phase a moment falls in according to ``timeline``."""
    day = moment.date() if isinstance(moment, datetime) else moment
    entries = sorted(settings.conflict_phase_timeline if timeline is None else timeline)
    phase = ConflictPhase.PRE_CONFLICT
    for start, name in entries:
        if start > day:
            break
        phase = ConflictPhase(name)
    return phase


def source_score(signals: TrustSignals) -> int:
    """T1: who produced the content and how reliable they have been."""
    score = 20
    if signals.author_known:
        score += 30
    if signals.institution:
        score += 15
    if signals.verified_expert:
        score += 20
    score += min(signals.accepted_contributions, 15)
    score -= min(5 * signals.retractions, 30)
    return _clamp(score)


def method_score(signals: TrustSignals) -> int:
    """T2: how clearly the method is documented."""
    score = 0
    if signals.method_described:
        score += 40
    if signals.reproducible:
        score += 30
    if signals.data_available:
        score += 30
    return _clamp(score)


def proximity_score(signals: TrustSignals) -> int:
    """T3: on-site beats remote beats inferred."""
    score = _PROXIMITY_BASE[ProximityType(signals.proximity_type)]
    if signals.firsthand:
        score += 10
    return _clamp(score)


def temporal_score(
    signals: TrustSignals,
    now: datetime,
) -> tuple[int, ConflictPhase | None, bool]:
    """T4: recency, decaying faster for data from volatile periods.

    Returns the score, the phase (declared, else derived from the data
    timestamp) and whether the data is time-sensitive.
    """
    phase = signals.conflict_phase
    if phase is None and signals.data_timestamp is not None:
        phase = phase_for(signals.data_timestamp)
    time_sensitive = signals.volatile or (phase is not None and phase in _VOLATILE_PHASES)

    if signals.data_timestamp is None:
        return _clamp(settings.trust_undated_temporal_score), phase, time_sensitive

    age_days = max(0.0, (as_utc(now) - as_utc(signals.data_timestamp)).total_seconds() / 86_400)
    half_life = (
        settings.trust_volatile_half_life_days if time_sensitive else settings.trust_half_life_days
    )
    return _clamp(100 * 0.5 ** (age_days / half_life)), phase, time_sensitive


def validation_score(signals: TrustSignals) -> int:
    """T5: independent corroboration minus contradictions."""
    score = 20
    score += 20 * min(signals.corroborating_count, _MAX_COUNTED_CORROBORATIONS)
    if signals.peer_reviewed:
        score += 20
    score += min(5 * signals.citation_count, 20)
    score -= 15 * min(signals.contradicting_count, _MAX_COUNTED_CONTRADICTIONS)
    return _clamp(score)


def _summary(signals: TrustSignals, values: tuple[int, ...], phase: ConflictPhase | None) -> str:
    labels = ("source", "method", "proximity", "temporal", "validation")
    text = ", ".join(f"{label} {value}" for label, value in zip(labels, values, strict=True))
    notes: list[str] = []
    if signals.firsthand and signals.proximity_type == ProximityType.ON_SITE:
        notes.append("firsthand on-site evidence")
    if signals.corroborating_count:
        notes.append(f"corroborated by {signals.corroborating_count} source(s)")
    if signals.contradicting_count:
        notes.append(f"contradicted by {signals.contradicting_count} source(s)")
    if phase is not None:
        notes.append(f"{phase.value.replace('_', ' ')} data")
    if notes:
        text += "; " + "; ".join(notes)
    return text[0].upper() + text[1:]


def compute(signals: TrustSignals, now: datetime | None = None) -> TrustScores:
    """Compute all five dimensions without touching storage."""
    now = now or utcnow()
    temporal, phase, time_sensitive = temporal_score(signals, now)
    source = source_score(signals)
    method = method_score(signals)
    proximity = proximity_score(signals)
    validation = validation_score(signals)
    return TrustScores(
        source=source,
        method=method,
        proximity=proximity,
        temporal=temporal,
        validation=validation,
        conflict_phase=phase,
        time_sensitive=time_sensitive,
        summary=_summary(signals, (source, method, proximity, temporal, validation), phase),
    )


class TrustScorer:
    """Persists trust profiles; recomputation replaces the stored row."""

    def __init__(
        self,
        db: Session,
        *,
        roles: RoleDirectory | None = None,
        audit: AuditLog | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.roles = roles or RoleDirectory(db)
        self.audit = audit or AuditLog(db)
        self.clock = clock

    def get(self, content_id: int, content_type: ContentType | str) -> TrustProfile | None:
        """Return the stored profile, if any."""
        stmt = select(TrustProfile).where(
            TrustProfile.content_id == content_id,
            TrustProfile.content_type == ContentType(content_type).value,
        )
        return self.db.scalar(stmt)

    def score(
        self,
        content_id: int,
        content_type: ContentType | str,
        signals: TrustSignals,
        *,
        actor_id: str | None = None,
        source_ip: str | None = None,
    ) -> TrustProfile:
        """Compute and upsert the profile for one content item.

        When ``actor_id`` is given the actor must hold a role allowed to
        score trust; calls without an actor come from internal pipelines.

        Raises:
            AuthorizationError: The actor may not score trust.
        """
        content_type = ContentType(content_type)
        if actor_id is not None:
            self._authorize(actor_id, content_id, content_type, source_ip)
        now = self.clock()
        scores = compute(signals, now)

        profile = self.get(content_id, content_type)
        if profile is None:
            profile = TrustProfile(content_id=content_id, content_type=content_type.value)
            self._apply(profile, signals, scores, now)
            try:
                with self.db.begin_nested():
                    self.db.add(profile)
                    self.db.flush()
            except IntegrityError:
                # Lost an insert race; overwrite the row that won.
                profile = self.get(content_id, content_type)
                if profile is None:
                    raise
                self._apply(profile, signals, scores, now)
        else:
            self._apply(profile, signals, scores, now)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def _authorize(
        self,
        actor_id: str,
        content_id: int,
        content_type: ContentType,
        source_ip: str | None,
    ) -> None:
        if is_allowed(self.roles.role_of(actor_id), Operation.SCORE_TRUST):
            return
        self.audit.record(
            "unauthorized_attempt",
            actor_id,
            {
                "operation": Operation.SCORE_TRUST.value,
                "content_id": content_id,
                "content_type": content_type.value,
            },
            category="moderation",
            source_ip=source_ip,
        )
        self.db.commit()
        raise AuthorizationError()

    @staticmethod
    def _apply(
        profile: TrustProfile,
        signals: TrustSignals,
        scores: TrustScores,
        now: datetime,
    ) -> None:
        profile.t1_source_score = scores.source
        profile.t1_author_known = signals.author_known
        profile.t1_institution = signals.institution
        profile.t2_method_score = scores.method
        profile.t2_method_described = signals.method_described
        profile.t2_reproducible = signals.reproducible
        profile.t2_data_available = signals.data_available
        profile.t3_proximity_score = scores.proximity
        profile.t3_proximity_type = ProximityType(signals.proximity_type).value
        profile.t3_firsthand = signals.firsthand
        profile.t4_temporal_score = scores.temporal
        profile.t4_conflict_phase = scores.conflict_phase.value if scores.conflict_phase else None
        profile.t4_data_timestamp = signals.data_timestamp
        profile.t4_is_time_sensitive = scores.time_sensitive
        profile.t5_validation_score = scores.validation
        profile.t5_corroborating_count = signals.corroborating_count
        profile.t5_contradicting_count = signals.contradicting_count
        profile.trust_summary = scores.summary
        profile.updated_at = now
