# tests/v1/test_conflicts.py
"""Tests for conflict resolution endpoints."""

from fastapi import status

from research_commons.models import AuditEvent, ConflictRecord


def _record(client, user, auth_headers, **overrides):
    payload = {
        "field_claim": {"value": True},
        "field_timestamp": "2026-02-01T00:00:00Z",
        "field_source_trust": 60,
        "external_claim": {"value": False},
        "external_timestamp": "2026-01-30T00:00:00Z",
        "external_source_trust": 55,
        "external_source_id": "osm:node/981",
        "location_name": "Central water tower",
    }
    payload.update(overrides)
    return client.post("/api/v1/conflicts", json=payload, headers=auth_headers(user))


def test_close_call_needs_review(client, researchers, auth_headers) -> None:
    response = _record(client, researchers[0], auth_headers)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["conflict_type"] == "existence"
    assert data["resolution"] == "needs_review"
    assert data["suggested_action"]
    assert data["field_claim"]["value"] is True
    assert data["external_claim"]["value"] is False


def test_trusted_external_source_wins(client, researchers, auth_headers) -> None:
    response = _record(
        client,
        researchers[0],
        auth_headers,
        field_claim={"value": 4},
        external_claim={"value": 9},
        external_source_trust=95,
    )

    assert response.json()["conflict_type"] == "attribute"
    assert response.json()["resolution"] == "external_wins"


def test_agreeing_claims_are_unprocessable(client, researchers, auth_headers) -> None:
    response = _record(
        client,
        researchers[0],
        auth_headers,
        external_claim={"value": True},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_members_cannot_record(client, db_session, reporter, auth_headers) -> None:
    assert _record(client, reporter, auth_headers).status_code == status.HTTP_403_FORBIDDEN

    assert db_session.query(ConflictRecord).count() == 0
    attempt = db_session.query(AuditEvent).filter_by(action="unauthorized_attempt").one()
    assert attempt.actor_id == reporter.id
    assert attempt.metadata_["external_source_id"] == "osm:node/981"


def test_adjudicate_and_follow_up(client, researchers, moderator, auth_headers) -> None:
    conflict_id = _record(client, researchers[0], auth_headers).json()["id"]
    headers = auth_headers(moderator)

    settled = client.post(
        f"/api/v1/conflicts/{conflict_id}/adjudicate",
        json={"resolution": "field_wins", "notes": "Tower seen standing on 2 Feb."},
        headers=headers,
    )
    again = client.post(
        f"/api/v1/conflicts/{conflict_id}/adjudicate",
        json={"resolution": "external_wins", "notes": "Second opinion"},
        headers=headers,
    )
    followed = client.post(f"/api/v1/conflicts/{conflict_id}/action-taken", headers=headers)

    assert settled.status_code == status.HTTP_200_OK
    assert settled.json()["resolution"] == "needs_review"
    assert settled.json()["adjudicated_resolution"] == "field_wins"
    assert again.status_code == status.HTTP_409_CONFLICT
    assert followed.json()["action_taken"] is True


def test_researcher_cannot_adjudicate(client, researchers, auth_headers) -> None:
    conflict_id = _record(client, researchers[0], auth_headers).json()["id"]

    response = client.post(
        f"/api/v1/conflicts/{conflict_id}/adjudicate",
        json={"resolution": "field_wins", "notes": "I was there"},
        headers=auth_headers(researchers[0]),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unknown_conflict(client, moderator, auth_headers) -> None:
    response = client.get("/api/v1/conflicts/777", headers=auth_headers(moderator))

    assert response.status_code == status.HTTP_404_NOT_FOUND
