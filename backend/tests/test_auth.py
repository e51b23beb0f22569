"""Tests for authentication endpoints."""

import pytest
from httpx import AsyncClient

from agrohub.models.user import User


@pytest.mark.integration
@pytest.mark.asyncio
class TestAuthEndpoints:

    async def test_register_user(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "newuser@example.com",
                "password": "SecurePassword123!",
                "name": "New User",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert "access_token" in data
        assert data["user"]["email"] == "newuser@example.com"
        assert data["user"]["role"] == "USER"

    async def test_register_duplicate_email(self, client: AsyncClient, user_a: User):
        response = await client.post(
            "/api/auth/register",
            json={"email": user_a.email, "password": "AnotherPassword123!", "name": "Dup"},
        )

        assert response.status_code == 400
        assert "already registered" in response.json()["error"]["message"].lower()

    async def test_login_success(self, client: AsyncClient, user_a: User):
        response = await client.post(
            "/api/auth/login",
            json={"email": user_a.email, "password": "testpassword123"},
        )

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user_a.id

    async def test_login_wrong_password(self, client: AsyncClient, user_a: User):
        response = await client.post(
            "/api/auth/login",
            json={"email": user_a.email, "password": "wrong-password"},
        )
        assert response.status_code == 401

    async def test_me(self, client: AsyncClient, user_a: User, headers_a: dict):
        response = await client.get("/api/auth/me", headers=headers_a)
        assert response.status_code == 200
        assert response.json()["email"] == user_a.email

    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json() == {"error": "Usuário não autenticado"}

    async def test_garbage_token_is_unauthenticated(self, client: AsyncClient):
        response = await client.get(
            "/api/farms/", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Usuário não autenticado"}
