"""Test authentication endpoints"""

import pytest
from fastapi import status

TEST_PASSWORD = "password123"


@pytest.mark.asyncio
async def test_login_success(client, employee_user):
    response = await client.post(
        "/auth/login", json={"login": employee_user.login, "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["user"]["login"] == "employee"
    assert "hashed_password" not in data["user"]


@pytest.mark.asyncio
async def test_login_invalid_credentials(client, employee_user):
    response = await client.post(
        "/auth/login", json={"login": employee_user.login, "password": "wrongpassword"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_user(client, roles):
    response = await client.post("/auth/login", json={"login": "ghost", "password": "whatever1"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_rate_limiting_login(client, employee_user):
    """Login is limited to 5 attempts per minute"""
    for i in range(6):
        response = await client.post(
            "/auth/login", json={"login": employee_user.login, "password": "wrongpassword"}
        )

        if i < 5:
            assert response.status_code == status.HTTP_401_UNAUTHORIZED
        else:
            assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS


@pytest.mark.asyncio
async def test_me_returns_roles_and_permission_map(client, manager_user, auth_headers):
    response = await client.get("/auth/me", headers=auth_headers(manager_user))

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["id"] == manager_user.id
    assert [role["name"] for role in data["roles"]] == ["Manager"]
    assert data["permissions"]["timeTracking.viewAll"] == 2
    assert data["permissions"]["production.read"] == 2
    assert "admin.access" not in data["permissions"]


@pytest.mark.asyncio
async def test_me_requires_token(client):
    response = await client.get("/auth/me")

    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


@pytest.mark.asyncio
async def test_me_rejects_garbage_token(client):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_refresh_rotates_token(client, employee_user):
    login = await client.post(
        "/auth/login", json={"login": employee_user.login, "password": TEST_PASSWORD}
    )
    refresh_token = login.json()["refresh_token"]

    first = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert first.status_code == 200
    assert first.json()["refresh_token"] != refresh_token

    # One-time use
    second = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert second.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(client, employee_user):
    login = await client.post(
        "/auth/login", json={"login": employee_user.login, "password": TEST_PASSWORD}
    )
    tokens = login.json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    response = await client.post(
        "/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers
    )
    assert response.status_code == status.HTTP_204_NO_CONTENT

    refreshed = await client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_deactivated_user_token_rejected(client, admin_user, employee_user, auth_headers):
    response = await client.delete(f"/users/{employee_user.id}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    me = await client.get("/auth/me", headers=auth_headers(employee_user))
    assert me.status_code == status.HTTP_401_UNAUTHORIZED
