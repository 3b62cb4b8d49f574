"""Tests for authentication and account blocking."""

import pytest

from telecare.core.security import create_refresh_token, decode_access_token
from telecare.services import auth_service


@pytest.fixture
def firebase_token(monkeypatch):
    """Accept any ID token as the given Firebase identity."""
    claims = {
        "uid": "firebase-new-user",
        "email": "new.user@example.com",
        "email_verified": True,
        "name": "New User",
    }

    async def verify(id_token: str) -> dict:
        if id_token == "invalid":
            raise ValueError("Invalid Firebase token")
        return claims

    monkeypatch.setattr(auth_service, "verify_firebase_token", verify)
    return claims


@pytest.mark.asyncio
async def test_firebase_login_creates_patient(client, firebase_token):
    response = await client.post("/api/v1/auth/firebase/verify", json={"id_token": "token"})

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "new.user@example.com"
    assert data["user"]["role"] == "patient"

    payload = decode_access_token(data["access_token"])
    assert payload["sub"] == data["user"]["id"]
    assert payload["role"] == "patient"


@pytest.mark.asyncio
async def test_firebase_login_invalid_token(client, firebase_token):
    response = await client.post("/api/v1/auth/firebase/verify", json={"id_token": "invalid"})

    assert response.status_code == 401
    assert response.json()["error"] == "UnauthorizedException"


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(client, patient, redis_mock):
    refresh_token = create_refresh_token(data={"sub": str(patient["id"]), "role": "patient"})

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 200
    assert decode_access_token(response.json()["access_token"])["sub"] == str(patient["id"])
    revoked = [call.args[0] for call in redis_mock.setex.call_args_list]
    assert f"blacklist:{refresh_token}" in revoked


@pytest.mark.asyncio
async def test_revoked_refresh_token_rejected(client, patient, redis_mock):
    redis_mock.exists.return_value = 1
    refresh_token = create_refresh_token(data={"sub": str(patient["id"]), "role": "patient"})

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 401
    assert response.json()["message"] == "Token has been revoked"


@pytest.mark.asyncio
async def test_access_token_is_not_a_refresh_token(client, patient, patient_headers):
    access_token = patient_headers["Authorization"].removeprefix("Bearer ")

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_blocked_user_is_rejected(client, patient, admin_headers, patient_headers):
    response = await client.patch(
        f"/api/v1/admin/users/{patient['id']}/block",
        json={"is_blocked": True},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["is_blocked"] is True

    response = await client.get("/api/v1/appointments", headers=patient_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "User is blocked"

    refresh_token = create_refresh_token(data={"sub": str(patient["id"]), "role": "patient"})
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 403
    assert response.json()["message"] == "User is blocked"


@pytest.mark.asyncio
async def test_blocked_user_cannot_log_in(client, firebase_token, admin_headers):
    response = await client.post("/api/v1/auth/firebase/verify", json={"id_token": "token"})
    user_id = response.json()["user"]["id"]
    await client.patch(
        f"/api/v1/admin/users/{user_id}/block", json={"is_blocked": True}, headers=admin_headers
    )

    response = await client.post("/api/v1/auth/firebase/verify", json={"id_token": "token"})

    assert response.status_code == 403
    assert response.json()["message"] == "User is blocked"


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(client, redis_mock):
    response = await client.post("/api/v1/auth/logout", json={"refresh_token": "some-token"})

    assert response.status_code == 204
    assert redis_mock.setex.call_args.args[0] == "blacklist:some-token"
