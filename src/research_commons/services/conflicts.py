"""Detection and resolution of contradictions between field and external data.

Resolution never blends the two claims: the outcome names a winner, or asks
for human review, and always carries both original claims.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Final, NoReturn

from sqlalchemy import update
from sqlalchemy.orm import Session

from research_commons.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from research_commons.core.settings import settings
from research_commons.db.time import as_utc, utcnow
from research_commons.models import ConflictRecord, ConflictType, ContentType, Resolution
from research_commons.services.audit import AuditLog
from research_commons.services.identity import RoleDirectory
from research_commons.services.permissions import Operation, is_allowed

ClaimValue = bool | int | float | str

_REVIEW_ACTIONS: Final[dict[ConflictType, str]] = {
    ConflictType.EXISTENCE: "Verify on site whether the feature still exists.",
    ConflictType.STATE: "Request a current field observation of the feature's condition.",
    ConflictType.ATTRIBUTE: "Re-measure the attribute and compare the methods of both sources.",
    ConflictType.TEMPORAL: "Confirm the validity period with both sources.",
}
_UNRESOLVED_ACTION: Final = (
    "Obtain a trust score or observation date for both sources before deciding."
)
_OPEN_RESOLUTIONS: Final = frozenset({Resolution.NEEDS_REVIEW, Resolution.UNRESOLVED})


@dataclass(frozen=True)
class Claim:
    """A value asserted by one source, optionally bounded in time."""

    value: ClaimValue
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool | int | float | str):
            raise ValidationError("Claim values must be booleans, numbers or text")
        if (
            self.valid_from is not None
            and self.valid_until is not None
            and as_utc(self.valid_from) > as_utc(self.valid_until)
        ):
            raise ValidationError("valid_from must not be after valid_until")

    def to_json(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Claim:
        def _parse(raw: str | None) -> datetime | None:
            return datetime.fromisoformat(raw) if raw else None

        return cls(
            value=data["value"],
            valid_from=_parse(data.get("valid_from")),
            valid_until=_parse(data.get("valid_until")),
        )


@dataclass(frozen=True)
class ConflictOutcome:
    """Classification and resolution of one contradiction."""

    conflict_type: ConflictType
    resolution: Resolution
    field_claim: Claim
    external_claim: Claim
    field_timestamp: datetime | None
    external_timestamp: datetime | None
    field_source_trust: int | None
    external_source_trust: int | None
    detail: str
    suggested_action: str | None = None


def _is_number(value: ClaimValue) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _same_validity(first: Claim, second: Claim) -> bool:
    def _norm(value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    return (
        _norm(first.valid_from) == _norm(second.valid_from)
        and _norm(first.valid_until) == _norm(second.valid_until)
    )


def _values_equal(first: ClaimValue, second: ClaimValue) -> bool:
    # True == 1 in Python; booleans only match booleans.
    if isinstance(first, bool) or isinstance(second, bool):
        return type(first) is type(second) and first == second
    return first == second


def classify(field_claim: Claim, external_claim: Claim) -> ConflictType:
    """Return the kind of disagreement between two claims.

    Raises:
        ValidationError: The claims agree, so there is no conflict.
    """
    field_value, external_value = field_claim.value, external_claim.value
    if _values_equal(field_value, external_value):
        if _same_validity(field_claim, external_claim):
            raise ValidationError("Claims agree; there is no conflict to resolve")
        return ConflictType.TEMPORAL
    if isinstance(field_value, bool) and isinstance(external_value, bool):
        return ConflictType.EXISTENCE
    if _is_number(field_value) and _is_number(external_value):
        return ConflictType.ATTRIBUTE
    return ConflictType.STATE


def _describe(conflict_type: ConflictType, field_claim: Claim, external_claim: Claim) -> str:
    if conflict_type is ConflictType.TEMPORAL:
        return (
            f"Both sources report {field_claim.value!r} but disagree on when it holds "
            f"(field {field_claim.valid_from}..{field_claim.valid_until}, "
            f"external {external_claim.valid_from}..{external_claim.valid_until})"
        )
    return (
        f"Field data reports {field_claim.value!r}; "
        f"external data reports {external_claim.value!r}"
    )


def resolve(
    field_claim: Claim,
    field_timestamp: datetime | None,
    external_claim: Claim,
    external_timestamp: datetime | None,
    external_source_trust: int | None,
    field_source_trust: int | None,
    *,
    trust_margin: int | None = None,
    staleness_days: int | None = None,
) -> ConflictOutcome:
    """Classify and resolve a contradiction.

    The result depends only on the arguments: a trust gap wider than the
    margin decides first, then an age gap wider than the staleness
    threshold; anything closer needs review, and nothing comparable at all
    is unresolved.
    """
    margin = settings.conflict_trust_margin if trust_margin is None else trust_margin
    staleness = timedelta(
        days=settings.conflict_staleness_days if staleness_days is None else staleness_days
    )
    conflict_type = classify(field_claim, external_claim)

    trust_known = field_source_trust is not None and external_source_trust is not None
    times_known = field_timestamp is not None and external_timestamp is not None

    if not trust_known and not times_known:
        resolution = Resolution.UNRESOLVED
    elif trust_known and abs(field_source_trust - external_source_trust) > margin:
        resolution = (
            Resolution.FIELD_WINS
            if field_source_trust > external_source_trust
            else Resolution.EXTERNAL_WINS
        )
    elif times_known and abs(as_utc(field_timestamp) - as_utc(external_timestamp)) > staleness:
        resolution = (
            Resolution.FIELD_WINS
            if as_utc(field_timestamp) > as_utc(external_timestamp)
            else Resolution.EXTERNAL_WINS
        )
    else:
        resolution = Resolution.NEEDS_REVIEW

    if resolution is Resolution.UNRESOLVED:
        suggested_action: str | None = _UNRESOLVED_ACTION
    elif resolution is Resolution.NEEDS_REVIEW:
        suggested_action = _REVIEW_ACTIONS[conflict_type]
    else:
        suggested_action = None

    return ConflictOutcome(
        conflict_type=conflict_type,
        resolution=resolution,
        field_claim=field_claim,
        external_claim=external_claim,
        field_timestamp=field_timestamp,
        external_timestamp=external_timestamp,
        field_source_trust=field_source_trust,
        external_source_trust=external_source_trust,
        detail=_describe(conflict_type, field_claim, external_claim),
        suggested_action=suggested_action,
    )


class ConflictResolver:
    """Resolves contradictions and keeps the record of them."""

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

    def resolve(
        self,
        field_claim: Claim,
        field_timestamp: datetime | None,
        external_claim: Claim,
        external_timestamp: datetime | None,
        external_source_trust: int | None,
        field_source_trust: int | None,
    ) -> ConflictOutcome:
        """Pure resolution using the configured margin and staleness."""
        return resolve(
            field_claim,
            field_timestamp,
            external_claim,
            external_timestamp,
            external_source_trust,
            field_source_trust,
        )

    def record(
        self,
        field_claim: Claim,
        field_timestamp: datetime | None,
        external_claim: Claim,
        external_timestamp: datetime | None,
        *,
        external_source_id: str,
        external_source_trust: int | None = None,
        field_source_trust: int | None = None,
        field_content_id: int | None = None,
        field_content_type: ContentType | str | None = None,
        location_name: str | None = None,
        actor_id: str | None = None,
        source_ip: str | None = None,
    ) -> tuple[ConflictRecord, ConflictOutcome]:
        """Resolve a contradiction and persist it.

        When ``actor_id`` is given the actor must hold a role allowed to
        score trust; calls without an actor come from internal pipelines.
        """
        if actor_id is not None:
            self._authorize(
                actor_id,
                Operation.SCORE_TRUST,
                {"external_source_id": external_source_id},
                source_ip,
            )
        if not external_source_id:
            raise ValidationError("external_source_id is required")
        outcome = self.resolve(
            field_claim,
            field_timestamp,
            external_claim,
            external_timestamp,
            external_source_trust,
            field_source_trust,
        )
        record = ConflictRecord(
            conflict_type=outcome.conflict_type.value,
            conflict_detail=outcome.detail,
            external_source_id=external_source_id,
            external_claim=external_claim.to_json(),
            external_timestamp=external_timestamp,
            external_source_trust=external_source_trust,
            field_content_id=field_content_id,
            field_content_type=(
                ContentType(field_content_type).value if field_content_type else None
            ),
            field_claim=field_claim.to_json(),
            field_timestamp=field_timestamp,
            field_source_trust=field_source_trust,
            resolution=outcome.resolution.value,
            suggested_action=outcome.suggested_action,
            action_taken=False,
            location_name=location_name,
            created_at=self.clock(),
        )
        self.db.add(record)
        self.db.flush()
        self.audit.record(
            "conflict_detected",
            actor_id,
            {
                "conflict_id": record.id,
                "conflict_type": outcome.conflict_type.value,
                "resolution": outcome.resolution.value,
                "external_source_id": external_source_id,
            },
            source_ip=source_ip,
        )
        self.db.commit()
        self.db.refresh(record)
        return record, outcome

    def get(self, conflict_id: int) -> ConflictRecord:
        record = self.db.get(ConflictRecord, conflict_id)
        if record is None:
            raise NotFoundError("Conflict not found")
        return record

    def adjudicate(
        self,
        conflict_id: int,
        actor_id: str,
        resolution: Resolution | str,
        notes: str,
        *,
        source_ip: str | None = None,
    ) -> ConflictRecord:
        """Settle a conflict that automatic resolution left open.

        The computed ``resolution`` is kept; the human decision is stored
        alongside it.
        """
        self._authorize(
            actor_id, Operation.ADJUDICATE_CONFLICT, {"conflict_id": conflict_id}, source_ip
        )
        decision = Resolution(resolution)
        if decision not in (Resolution.FIELD_WINS, Resolution.EXTERNAL_WINS):
            raise ValidationError("Adjudication must pick field_wins or external_wins")
        notes = (notes or "").strip()
        if not notes:
            raise ValidationError("Resolution notes are required")

        record = self.get(conflict_id)
        if Resolution(record.resolution) not in _OPEN_RESOLUTIONS:
            self._reject_transition(
                actor_id,
                {"conflict_id": conflict_id, "decision": decision.value},
                source_ip,
                "Conflict was already resolved automatically",
            )

        result = self.db.execute(
            update(ConflictRecord)
            .where(
                ConflictRecord.id == conflict_id,
                ConflictRecord.adjudicated_resolution.is_(None),
            )
            .values(
                adjudicated_resolution=decision.value,
                resolution_notes=notes,
                resolved_by=actor_id,
                resolved_at=self.clock(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            self._reject_transition(
                actor_id,
                {"conflict_id": conflict_id, "decision": decision.value},
                source_ip,
                "Conflict has already been adjudicated",
            )

        self.audit.record(
            "conflict_adjudicated",
            actor_id,
            {
                "conflict_id": conflict_id,
                "computed_resolution": record.resolution,
                "decision": decision.value,
            },
            source_ip=source_ip,
        )
        self.db.commit()
        self.db.refresh(record)
        return record

    def mark_action_taken(
        self,
        conflict_id: int,
        actor_id: str,
        *,
        source_ip: str | None = None,
    ) -> ConflictRecord:
        """Flag that the suggested follow-up has been carried out."""
        self._authorize(
            actor_id, Operation.ADJUDICATE_CONFLICT, {"conflict_id": conflict_id}, source_ip
        )
        record = self.get(conflict_id)
        if record.action_taken:
            return record
        record.action_taken = True
        self.db.flush()
        self.audit.record(
            "conflict_action_taken",
            actor_id,
            {"conflict_id": conflict_id},
            source_ip=source_ip,
        )
        self.db.commit()
        self.db.refresh(record)
        return record

    def _authorize(
        self,
        actor_id: str,
        operation: Operation,
        metadata: dict[str, Any],
        source_ip: str | None,
    ) -> None:
        if is_allowed(self.roles.role_of(actor_id), operation):
            return
        self.audit.record(
            "unauthorized_attempt",
            actor_id,
            {"operation": operation.value, **metadata},
            category="moderation",
            source_ip=source_ip,
        )
        self.db.commit()
        raise AuthorizationError()

    def _reject_transition(
        self,
        actor_id: str,
        metadata: dict[str, Any],
        source_ip: str | None,
        message: str,
    ) -> NoReturn:
        self.audit.record(
            "invalid_transition",
            actor_id,
            metadata,
            category="moderation",
            source_ip=source_ip,
        )
        self.db.commit()
        raise InvalidTransitionError(message)
