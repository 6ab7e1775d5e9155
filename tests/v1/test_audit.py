# tests/v1/test_audit.py
"""Tests for the audit trail endpoint."""

from fastapi import status

from research_commons.models import AuditEvent
from research_commons.services.audit import AuditLog


def test_admin_reads_filtered_trail(client, db_session, admin, reporter, auth_headers) -> None:
    log = AuditLog(db_session)
    log.record("content_flagged", reporter.id, {"report_id": 1})
    log.record("login_failed", reporter.id, {"reason": "bad password"})
    db_session.commit()

    response = client.get(
        "/api/v1/audit",
        params={"category": "moderation"},
        headers=auth_headers(admin),
    )

    assert response.status_code == status.HTTP_200_OK
    events = response.json()
    assert [event["action"] for event in events] == ["content_flagged"]
    assert events[0]["metadata"] == {"report_id": 1}


def test_moderators_cannot_read_trail(client, db_session, moderator, auth_headers) -> None:
    response = client.get("/api/v1/audit", headers=auth_headers(moderator))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    attempt = db_session.query(AuditEvent).filter_by(action="unauthorized_attempt").one()
    assert attempt.actor_id == moderator.id
    assert attempt.metadata_ == {"operation": "view_audit_log"}
