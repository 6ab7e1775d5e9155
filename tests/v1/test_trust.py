# tests/v1/test_trust.py
"""Tests for trust profile endpoints."""

from fastapi import status

from research_commons.models import AuditEvent, User


def test_researcher_scores_content(client, researchers, post, auth_headers) -> None:
    response = client.put(
        f"/api/v1/trust/post/{post.id}",
        json={
            "author_known": True,
            "method_described": True,
            "proximity_type": "on_site",
            "firsthand": True,
            "corroborating_count": 2,
        },
        headers=auth_headers(researchers[0]),
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["t3_proximity_score"] == 100
    assert data["t2_method_score"] == 40
    assert data["t5_corroborating_count"] == 2
    assert "composite" not in data

    fetched = client.get(f"/api/v1/trust/post/{post.id}", headers=auth_headers(researchers[0]))
    assert fetched.json()["t1_source_score"] == data["t1_source_score"]


def test_members_cannot_score(client, db_session, reporter, post, auth_headers) -> None:
    response = client.put(
        f"/api/v1/trust/post/{post.id}",
        json={},
        headers=auth_headers(reporter),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    attempt = db_session.query(AuditEvent).filter_by(action="unauthorized_attempt").one()
    assert attempt.actor_id == reporter.id
    assert attempt.metadata_["content_id"] == post.id


def test_unrecognised_role_is_forbidden(client, db_session, post, auth_headers) -> None:
    account = User(id="legacy-account", display_name="Legacy", role="superuser")
    db_session.add(account)
    db_session.commit()

    response = client.put(
        f"/api/v1/trust/post/{post.id}",
        json={},
        headers=auth_headers(account),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_negative_counts_are_unprocessable(client, researchers, post, auth_headers) -> None:
    response = client.put(
        f"/api/v1/trust/post/{post.id}",
        json={"retractions": -2},
        headers=auth_headers(researchers[0]),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_missing_profile_is_not_found(client, reporter, auth_headers) -> None:
    response = client.get("/api/v1/trust/comment/4242", headers=auth_headers(reporter))

    assert response.status_code == status.HTTP_404_NOT_FOUND
