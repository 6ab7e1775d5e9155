# tests/v1/test_jwt_validation.py
"""Tests for JWT token validation edge cases."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import status
from jose import JWTError, jwt

from research_commons.core.security import create_access_token, decode_access_token
from research_commons.core.settings import settings


class TestTokenHelpers:
    """Round trips through the token helpers."""

    def test_subject_is_the_user_id(self):
        token = create_access_token("user-0042")

        assert decode_access_token(token)["sub"] == "user-0042"

    def test_extra_claims_are_kept(self):
        token = create_access_token("user-0042", {"scope": "moderation"})

        assert decode_access_token(token)["scope"] == "moderation"

    def test_wrong_secret_is_rejected(self):
        token = jwt.encode({"sub": "user-0042"}, "wrong_secret_key", algorithm="HS256")

        with pytest.raises(JWTError):
            decode_access_token(token)


class TestJWTValidationEdgeCases:
    """Invalid tokens never reach a route."""

    def test_jwt_with_malformed_token(self, client):
        response = client.get(
            "/api/v1/appeals",
            headers={"Authorization": "Bearer not.a.valid.jwt"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_expired_token(self, client, reporter):
        token = jwt.encode(
            {"sub": reporter.id, "exp": datetime.now(UTC) - timedelta(minutes=5)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        response = client.get("/api/v1/appeals", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_token_without_subject(self, client):
        token = jwt.encode(
            {"exp": datetime.now(UTC) + timedelta(minutes=5)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        response = client.get("/api/v1/appeals", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_role_claim_in_token_is_ignored(self, client, reporter):
        """Roles come from the user table, not from the token."""
        token = create_access_token(reporter.id, {"role": "admin"})

        response = client.get("/api/v1/audit", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_403_FORBIDDEN
