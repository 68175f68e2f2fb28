from __future__ import annotations

from conftest import TEST_PASSWORD


async def test_register_login_me(client) -> None:
    response = await client.post(
        "/auth/register",
        json={"email": "new@example.com", "name": "新人", "password": "secret123"},
    )
    assert response.status_code == 200
    assert response.json()["role"] == "staff"

    response = await client.post("/auth/login", json={"email": "new@example.com", "password": "secret123"})
    assert response.status_code == 200
    tokens = response.json()
    assert tokens["token_type"] == "bearer"

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert response.json()["email"] == "new@example.com"


async def test_refresh_token_is_not_an_access_token(client, users) -> None:
    response = await client.post("/auth/login", json={"email": "staff@example.com", "password": TEST_PASSWORD})
    refresh = response.json()["refresh_token"]
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {refresh}"})
    assert response.status_code == 401


async def test_duplicate_email(client, users) -> None:
    response = await client.post(
        "/auth/register",
        json={"email": "staff@example.com", "name": "重複", "password": "secret123"},
    )
    assert response.status_code == 400


async def test_wrong_password(client, users) -> None:
    response = await client.post("/auth/login", json={"email": "staff@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
