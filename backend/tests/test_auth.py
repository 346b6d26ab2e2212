"""
Tests for bearer token authentication.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import status
from jose import jwt

from app.config import settings
from app.utils.dependencies import decode_access_token, get_current_user


def make_token(secret=None, audience=None, expires_in=timedelta(minutes=5), **claims):
    payload = {
        "sub": "user-42",
        "email": "pm@example.com",
        "aud": audience or settings.AUTH_JWT_AUDIENCE,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, secret or settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


@pytest.fixture
def anonymous_client(client):
    """TestClient that goes through the real token check."""
    from app.main import app

    app.dependency_overrides.pop(get_current_user, None)
    return client


def test_decode_valid_token():
    """Test a token signed with the shared secret is accepted."""
    claims = decode_access_token(make_token())
    assert claims["sub"] == "user-42"


def test_decode_wrong_secret():
    """Test a token signed with another secret is rejected."""
    assert decode_access_token(make_token(secret="someone-else")) is None


def test_decode_wrong_audience():
    """Test a token for another audience is rejected."""
    assert decode_access_token(make_token(audience="other-app")) is None


def test_decode_expired_token():
    """Test an expired token is rejected."""
    assert decode_access_token(make_token(expires_in=timedelta(minutes=-1))) is None


def test_request_with_token(anonymous_client, project):
    """Test an authenticated request reaches the route."""
    response = anonymous_client.get(
        f"/api/projects/{project.id}/integrations",
        headers={"Authorization": f"Bearer {make_token()}"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == []


def test_request_without_token(anonymous_client, project):
    """Test a request without a token is rejected."""
    response = anonymous_client.get(f"/api/projects/{project.id}/integrations")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_request_with_invalid_token(anonymous_client, project):
    """Test a request with a garbage token is rejected."""
    response = anonymous_client.get(
        f"/api/projects/{project.id}/integrations",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_token_without_subject(anonymous_client, project):
    """Test a token lacking a subject claim is rejected."""
    token = make_token(sub="")
    response = anonymous_client.get(
        f"/api/projects/{project.id}/integrations",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
