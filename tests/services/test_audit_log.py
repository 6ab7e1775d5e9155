# tests/services/test_audit_log.py
"""Tests for the audit trail writer."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from research_commons.models import AuditCategory, AuditEvent
from research_commons.models.audit import ImmutableAuditEventError
from research_commons.services.audit import AuditLog, infer_category


@pytest.mark.parametrize(
    ("action", "expected"),
    [
        ("login_failed", AuditCategory.AUTH),
        ("signup", AuditCategory.AUTH),
        ("content_flagged", AuditCategory.MODERATION),
        ("appeal_submitted", AuditCategory.MODERATION),
        ("jury_vote_cast", AuditCategory.MODERATION),
        ("role_changed", AuditCategory.MODERATION),
        ("admin_settings_changed", AuditCategory.ADMIN),
        ("user_banned", AuditCategory.ADMIN),
        ("something_else", AuditCategory.GENERAL),
    ],
)
def test_infer_category(action: str, expected: AuditCategory) -> None:
    assert infer_category(action) is expected


def test_record_persists_event_with_metadata(db_session) -> None:
    audit = AuditLog(db_session)

    event_id = audit.record(
        "content_flagged",
        "user-1",
        {"report_id": 7},
        source_ip="203.0.113.7",
    )
    db_session.commit()

    event = db_session.get(AuditEvent, event_id)
    assert event.category == AuditCategory.MODERATION.value
    assert event.metadata_ == {"report_id": 7}
    assert event.source_ip == "203.0.113.7"


def test_explicit_category_overrides_inference(db_session) -> None:
    audit = AuditLog(db_session)
    event_id = audit.record("unauthorized_attempt", "user-1", category="moderation")
    db_session.commit()
    assert db_session.get(AuditEvent, event_id).category == "moderation"


def test_unknown_category_falls_back_to_inference(db_session, caplog) -> None:
    audit = AuditLog(db_session)

    with caplog.at_level("WARNING", logger="research_commons.services.audit"):
        event_id = audit.record("content_flagged", "user-1", category="bogus")
    db_session.commit()

    assert event_id is not None
    assert db_session.get(AuditEvent, event_id).category == AuditCategory.MODERATION.value
    assert "Unknown audit category 'bogus'" in caplog.text


def test_convenience_wrappers_pin_the_category(db_session) -> None:
    log = AuditLog(db_session)
    auth_id = log.record_auth_event("token_refreshed", "user-1", source_ip="10.0.0.5")
    mod_id = log.record_moderation_event("spam_cleared", "user-2", {"items": 3})

    auth_event = db_session.get(AuditEvent, auth_id)
    mod_event = db_session.get(AuditEvent, mod_id)
    assert auth_event.category == AuditCategory.AUTH.value
    assert auth_event.source_ip == "10.0.0.5"
    assert mod_event.category == AuditCategory.MODERATION.value
    assert mod_event.metadata_ == {"items": 3}


def test_write_failure_is_swallowed_and_logged(db_session, mocker, caplog) -> None:
    """A failing insert returns None and never raises into the caller."""
    mocker.patch.object(db_session, "flush", side_effect=SQLAlchemyError("disk full"))

    assert AuditLog(db_session).record("content_flagged", "user-1") is None
    assert "Failed to record audit event content_flagged" in caplog.text


def test_events_cannot_be_modified(db_session) -> None:
    audit = AuditLog(db_session)
    event_id = audit.record("content_flagged", "user-1")
    db_session.commit()

    event = db_session.get(AuditEvent, event_id)
    event.action = "content_approved"
    with pytest.raises(ImmutableAuditEventError):
        db_session.flush()
    db_session.rollback()


def test_events_cannot_be_deleted(db_session) -> None:
    event_id = AuditLog(db_session).record("content_flagged", "user-1")
    db_session.commit()

    db_session.delete(db_session.get(AuditEvent, event_id))
    with pytest.raises(ImmutableAuditEventError):
        db_session.flush()
    db_session.rollback()


def test_list_events_filters_newest_first(db_session) -> None:
    audit = AuditLog(db_session)
    audit.record("login_failed", "user-1")
    audit.record("content_flagged", "user-1")
    audit.record("content_flagged", "user-2")
    db_session.commit()

    flagged = audit.list_events(action="content_flagged")
    assert [event.actor_id for event in flagged] == ["user-2", "user-1"]
    assert len(audit.list_events(category=AuditCategory.AUTH)) == 1
    assert len(audit.list_events(actor_id="user-1")) == 2
