# tests/services/test_conflict_resolver.py
"""Tests for field-versus-external conflict handling."""

from datetime import UTC, datetime, timedelta

import pytest

from research_commons.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    ValidationError,
)
from research_commons.models import (
    AuditEvent,
    ConflictRecord,
    ConflictType,
    ContentType,
    Resolution,
)
from research_commons.services.conflicts import Claim, ConflictResolver, classify, resolve

T0 = datetime(2026, 2, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    ("field_value", "external_value", "expected"),
    [
        (True, False, ConflictType.EXISTENCE),
        (12, 40.5, ConflictType.ATTRIBUTE),
        ("damaged", "operational", ConflictType.STATE),
        ("damaged", 3, ConflictType.STATE),
        (True, 1, ConflictType.STATE),
    ],
)
def test_classify_by_value_kind(field_value, external_value, expected) -> None:
    assert classify(Claim(field_value), Claim(external_value)) is expected


def test_matching_values_with_different_validity_are_temporal() -> None:
    field = Claim("closed", valid_from=T0)
    external = Claim("closed", valid_from=T0 - timedelta(days=90))

    assert classify(field, external) is ConflictType.TEMPORAL


def test_identical_claims_are_not_a_conflict() -> None:
    with pytest.raises(ValidationError):
        classify(Claim("open"), Claim("open"))


def test_inverted_validity_window_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Claim("open", valid_from=T0, valid_until=T0 - timedelta(days=1))


def test_trust_margin_decides_first() -> None:
    outcome = resolve(Claim(True), T0, Claim(False), T0, 40, 80)

    assert outcome.resolution is Resolution.FIELD_WINS
    assert outcome.suggested_action is None
    assert outcome.field_claim.value is True
    assert outcome.external_claim.value is False


def test_higher_external_trust_wins() -> None:
    outcome = resolve(Claim(10), T0, Claim(14), T0, 90, 50)

    assert outcome.resolution is Resolution.EXTERNAL_WINS


def test_newer_data_wins_when_trust_is_close() -> None:
    outcome = resolve(
        Claim("damaged"),
        T0,
        Claim("operational"),
        T0 - timedelta(days=120),
        70,
        65,
    )

    assert outcome.resolution is Resolution.FIELD_WINS


def test_close_trust_and_recent_data_need_review() -> None:
    outcome = resolve(Claim(True), T0, Claim(False), T0 - timedelta(days=3), 70, 65)

    assert outcome.resolution is Resolution.NEEDS_REVIEW
    assert outcome.conflict_type is ConflictType.EXISTENCE
    assert outcome.suggested_action


def test_nothing_to_compare_is_unresolved() -> None:
    outcome = resolve(Claim(True), None, Claim(False), None, None, 50)

    assert outcome.resolution is Resolution.UNRESOLVED
    assert outcome.suggested_action


def test_resolution_is_deterministic() -> None:
    args = (Claim(3), T0, Claim(5), T0 - timedelta(days=10), 60, 58)

    assert resolve(*args) == resolve(*args)


def test_record_persists_both_claims(db_session, clock) -> None:
    resolver = ConflictResolver(db_session, clock=clock)

    record, outcome = resolver.record(
        Claim("damaged"),
        T0,
        Claim("operational", valid_from=T0 - timedelta(days=200)),
        T0 - timedelta(days=200),
        external_source_id="osm:way/1234",
        external_source_trust=60,
        field_source_trust=62,
        field_content_id=9,
        field_content_type=ContentType.POST,
        location_name="Eastern bridge",
    )

    assert record.id is not None
    assert record.resolution == outcome.resolution.value == Resolution.FIELD_WINS.value
    assert record.field_claim["value"] == "damaged"
    assert record.external_claim["value"] == "operational"
    assert record.external_claim["valid_from"] is not None
    assert Claim.from_json(record.external_claim).valid_from is not None
    assert record.action_taken is False
    event = db_session.query(AuditEvent).filter_by(action="conflict_detected").one()
    assert event.metadata_["conflict_id"] == record.id


def test_record_requires_external_source(db_session) -> None:
    with pytest.raises(ValidationError):
        ConflictResolver(db_session).record(
            Claim(1), T0, Claim(2), T0, external_source_id=""
        )


def test_recording_is_limited_to_contributors(db_session, reporter, researchers) -> None:
    resolver = ConflictResolver(db_session)

    with pytest.raises(AuthorizationError):
        resolver.record(
            Claim(True),
            T0,
            Claim(False),
            T0,
            external_source_id="ngo-survey-7",
            actor_id=reporter.id,
            source_ip="198.51.100.4",
        )

    assert db_session.query(ConflictRecord).count() == 0
    attempt = db_session.query(AuditEvent).filter_by(action="unauthorized_attempt").one()
    assert attempt.actor_id == reporter.id
    assert attempt.source_ip == "198.51.100.4"
    assert attempt.metadata_ == {
        "operation": "score_trust",
        "external_source_id": "ngo-survey-7",
    }

    record, _ = resolver.record(
        Claim(True),
        T0,
        Claim(False),
        T0,
        external_source_id="ngo-survey-7",
        actor_id=researchers[0].id,
    )
    assert record.id is not None


def _open_conflict(resolver: ConflictResolver):
    record, _ = resolver.record(
        Claim(True),
        T0,
        Claim(False),
        T0,
        external_source_id="ngo-survey-7",
        external_source_trust=55,
        field_source_trust=60,
    )
    return record


def test_adjudicate_keeps_computed_resolution(db_session, moderator) -> None:
    resolver = ConflictResolver(db_session)
    record = _open_conflict(resolver)

    settled = resolver.adjudicate(
        record.id, moderator.id, Resolution.EXTERNAL_WINS, "Site visit confirmed"
    )

    assert settled.resolution == Resolution.NEEDS_REVIEW.value
    assert settled.adjudicated_resolution == Resolution.EXTERNAL_WINS.value
    assert settled.resolved_by == moderator.id
    assert settled.resolved_at is not None


def test_adjudicate_only_once(db_session, moderator, admin) -> None:
    resolver = ConflictResolver(db_session)
    record = _open_conflict(resolver)
    resolver.adjudicate(record.id, moderator.id, Resolution.FIELD_WINS, "Photos attached")

    with pytest.raises(InvalidTransitionError):
        resolver.adjudicate(record.id, admin.id, Resolution.EXTERNAL_WINS, "Second look")

    loss = db_session.query(AuditEvent).filter_by(action="invalid_transition").one()
    assert loss.actor_id == admin.id
    assert loss.metadata_ == {"conflict_id": record.id, "decision": "external_wins"}
    db_session.refresh(record)
    assert record.adjudicated_resolution == Resolution.FIELD_WINS.value


def test_adjudicate_rejects_automatically_resolved(db_session, moderator) -> None:
    resolver = ConflictResolver(db_session)
    record, _ = resolver.record(
        Claim(True),
        T0,
        Claim(False),
        T0,
        external_source_id="x",
        external_source_trust=10,
        field_source_trust=90,
    )

    with pytest.raises(InvalidTransitionError):
        resolver.adjudicate(record.id, moderator.id, Resolution.EXTERNAL_WINS, "Disagree")

    rejected = db_session.query(AuditEvent).filter_by(action="invalid_transition").one()
    assert rejected.actor_id == moderator.id
    assert rejected.metadata_ == {"conflict_id": record.id, "decision": "external_wins"}


def test_adjudicate_requires_a_winner_and_notes(db_session, moderator) -> None:
    resolver = ConflictResolver(db_session)
    record = _open_conflict(resolver)

    with pytest.raises(ValidationError):
        resolver.adjudicate(record.id, moderator.id, Resolution.NEEDS_REVIEW, "Unsure")
    with pytest.raises(ValidationError):
        resolver.adjudicate(record.id, moderator.id, Resolution.FIELD_WINS, "   ")


def test_members_cannot_adjudicate(db_session, reporter) -> None:
    resolver = ConflictResolver(db_session)
    record = _open_conflict(resolver)

    with pytest.raises(AuthorizationError):
        resolver.adjudicate(record.id, reporter.id, Resolution.FIELD_WINS, "I was there")

    attempt = db_session.query(AuditEvent).filter_by(action="unauthorized_attempt").one()
    assert attempt.actor_id == reporter.id


def test_mark_action_taken_is_idempotent(db_session, moderator) -> None:
    resolver = ConflictResolver(db_session)
    record = _open_conflict(resolver)

    resolver.mark_action_taken(record.id, moderator.id)
    again = resolver.mark_action_taken(record.id, moderator.id)

    assert again.action_taken is True
    events = db_session.query(AuditEvent).filter_by(action="conflict_action_taken").all()
    assert len(events) == 1
