import itertools
import os
from typing import AsyncGenerator, Dict

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from school_billing.main import app
from school_billing.auth.models import User
from school_billing.auth.security import create_access_token, hash_password, token_claims
from school_billing.db.session import Base, enable_sqlite_foreign_keys, get_db
import school_billing.core.models  # noqa: F401


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_student_numbers = itertools.count(1)


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test; StaticPool keeps the single connection alive."""
    engine = enable_sqlite_foreign_keys(
        create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _make_user(db: AsyncSession, username: str, role: str, password: str = "secret123") -> User:
    user = User(
        username=username,
        email=f"{username}@school.com",
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def _auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(token_claims(user.id, user.username, user.role))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin", "admin")


@pytest.fixture()
async def staff_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "clerk", "staff")


@pytest.fixture()
async def teacher_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "teacher", "teacher")


@pytest.fixture()
def admin_headers(admin_user: User) -> Dict[str, str]:
    return _auth_headers(admin_user)


@pytest.fixture()
def staff_headers(staff_user: User) -> Dict[str, str]:
    return _auth_headers(staff_user)


@pytest.fixture()
def teacher_headers(teacher_user: User) -> Dict[str, str]:
    return _auth_headers(teacher_user)


@pytest.fixture()
def create_student(client: AsyncClient, staff_headers: Dict[str, str]):
    """Factory: create a student through the API and return its id."""

    async def _create(**overrides) -> int:
        payload = {
            "student_number": f"S-{next(_student_numbers):05d}",
            "first_name": "Ana",
            "last_name": "Santos",
            "grade_level": 1,
            "enrollment_date": "2024-06-01",
        }
        payload.update(overrides)
        resp = await client.post("/api/students", json=payload, headers=staff_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["studentId"]

    return _create


@pytest.fixture()
def create_charge(client: AsyncClient, staff_headers: Dict[str, str]):
    """Factory: create a charge through the API and return its id."""

    async def _create(**overrides) -> int:
        payload = {
            "name": "Tuition Fee",
            "amount": "500.00",
            "charge_type": "tuition",
            "grade_level": 1,
            "is_mandatory": True,
        }
        payload.update(overrides)
        resp = await client.post("/api/charges", json=payload, headers=staff_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["chargeId"]

    return _create


@pytest.fixture()
def pay(client: AsyncClient, staff_headers: Dict[str, str]):
    """Factory: record a payment with the given items and return the response body."""

    async def _pay(student_id: int, items, method: str = "cash", payment_date: str = "2024-07-01") -> dict:
        resp = await client.post(
            "/api/payments",
            json={
                "student_id": student_id,
                "payment_date": payment_date,
                "payment_method": method,
                "items": items,
            },
            headers=staff_headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _pay
