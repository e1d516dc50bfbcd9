"""Integration tests for /auth/login and /auth/verify."""
from __future__ import annotations

import pytest
from httpx import AsyncClient

from plp.auth import generate_access_code, validate_access_code
from plp.config import settings


@pytest.mark.anyio
async def test_login_with_admin_credentials(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": settings.admin_email, "password": settings.admin_password},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["tokenType"] == "bearer"
    assert body["user"] == {"email": settings.admin_email, "role": "admin"}
    assert "expiresAt" in body
    assert validate_access_code(body["token"])["role"] == "admin"


@pytest.mark.anyio
async def test_login_email_is_case_insensitive(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": settings.admin_email.upper(), "password": settings.admin_password},
    )
    assert resp.status_code == 200


@pytest.mark.anyio
async def test_login_wrong_password(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": settings.admin_email, "password": "wrong"},
    )
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_login_missing_fields(client: AsyncClient) -> None:
    resp = await client.post("/api/v1/auth/login", json={"email": settings.admin_email})
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_verify_valid_token(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    resp = await client.get("/api/v1/auth/verify", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["user"]["email"] == settings.admin_email


@pytest.mark.anyio
async def test_verify_without_token(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/auth/verify")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.anyio
async def test_verify_garbage_token(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/auth/verify", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_non_admin_token_forbidden_on_admin_route(client: AsyncClient) -> None:
    token = generate_access_code(subject="viewer@example.com", duration_hours=1)
    resp = await client.post(
        "/api/v1/content/footer",
        json={"phone": "02"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 403
