import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.models import User


@pytest.mark.asyncio
async def test_register_success(client: AsyncClient, db_session: AsyncSession, admin_headers) -> None:
    payload = {
        "username": "cashier1",
        "email": "cashier1@school.com",
        "password": "StrongPass123",
        "role": "staff",
    }

    response = await client.post("/api/auth/register", json=payload, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()

    assert data["success"] is True
    assert data["message"] == "User registered successfully"
    assert "userId" in data

    # Verify user created with a hashed password
    user_result = await db_session.execute(select(User).where(User.username == payload["username"]))
    user = user_result.scalar_one_or_none()
    assert user is not None
    assert user.role == "staff"
    assert user.password_hash != payload["password"]


@pytest.mark.asyncio
async def test_register_requires_admin(client: AsyncClient, staff_headers) -> None:
    payload = {"username": "xavier", "email": "xavier@school.com", "password": "StrongPass123"}
    response = await client.post("/api/auth/register", json=payload, headers=staff_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_register_duplicate_username(client: AsyncClient, admin_headers, admin_user) -> None:
    payload = {"username": admin_user.username, "email": "new@school.com", "password": "StrongPass123"}
    response = await client.post("/api/auth/register", json=payload, headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, staff_user) -> None:
    response = await client.post("/api/auth/login", json={"username": "clerk", "password": "secret123"})
    assert response.status_code == 200
    data = response.json()

    assert data["success"] is True
    assert "token" in data
    assert data["user"]["username"] == "clerk"
    assert data["user"]["role"] == "staff"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == staff_user.id


@pytest.mark.asyncio
async def test_login_oauth_form(client: AsyncClient, staff_user) -> None:
    response = await client.post("/api/auth/login-oauth", data={"username": "clerk", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, staff_user) -> None:
    response = await client.post("/api/auth/login", json={"username": "clerk", "password": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"
