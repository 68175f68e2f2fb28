"""Shared fixtures: an in-memory database, seeded users and an ASGI client."""

from __future__ import annotations

import os
from typing import AsyncGenerator, Dict

# Must be set before app.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.database import Base, get_db
from app.main import app
from app.models.user import User
from app.utils.password import hash_password

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "password123"


@pytest_asyncio.fixture
async def test_engine():
    """Fresh schema per test. StaticPool keeps every connection on the same
    in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def users(session_factory) -> Dict[str, User]:
    """Two staff members and one admin."""
    hashed = hash_password(TEST_PASSWORD)
    seeded = {
        "staff": User(email="staff@example.com", name="山田", hashed_password=hashed, role="staff"),
        "other": User(email="other@example.com", name="佐藤", hashed_password=hashed, role="staff"),
        "admin": User(email="admin@example.com", name="管理者", hashed_password=hashed, role="admin"),
    }
    async with session_factory() as session:
        session.add_all(seeded.values())
        await session.commit()
        for user in seeded.values():
            await session.refresh(user)
    return seeded


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def staff_headers(users) -> Dict[str, str]:
    return auth_headers(users["staff"])


@pytest.fixture
def other_headers(users) -> Dict[str, str]:
    return auth_headers(users["other"])


@pytest.fixture
def admin_headers(users) -> Dict[str, str]:
    return auth_headers(users["admin"])


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client wired to the app with ``get_db`` pointed at the test
    database. Startup events do not run under ASGITransport."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    app.dependency_overrides.clear()


def report_payload(user_id: int, day: str = "2024-05-01", report_index=None, **fields) -> dict:
    report = {
        "completed": ["設計レビュー"],
        "in_progress": ["API実装"],
        "issues": [],
        "tomorrow": ["テスト作成"],
        "project": "Oasis",
        "status": "completed",
    }
    report.update(fields)
    body = {"user_id": user_id, "date": day, "report": report}
    if report_index is not None:
        body["report_index"] = report_index
    return body
