"""Pytest fixtures and configuration"""

import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Dict
from uuid import uuid4

# Settings are read at import time; point them at a throwaway sqlite file
TEST_DB_PATH = Path(tempfile.gettempdir()) / f"settlement_test_{os.getpid()}.db"
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{TEST_DB_PATH}")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.deps import get_settlement_autosaver
from app.core.security import hash_password
from app.database import Base, get_db
from app.main import app
from app.models.user import User
from app.repositories.settlement_repository import SettlementRepository
from app.services.autosave_service import SettlementAutosaver
from app.services.cache_service import CacheService

test_engine = create_async_engine(
    os.environ["DATABASE_URL"],
    poolclass=NullPool,  # No connection pooling for tests
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    Tables are dropped after the test completes.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def autosaver(db_session: AsyncSession) -> AsyncGenerator[SettlementAutosaver, None]:
    """
    Autosaver writing through the test session.

    Delays are long so nothing is written unless a test flushes explicitly.
    """
    async def write(settlement_id, data):
        settlement = await SettlementRepository.get_by_id(db_session, settlement_id)
        if settlement is None:
            return False
        await SettlementRepository.update_data(db_session, settlement, data.to_blob())
        await db_session.commit()
        return True

    saver = SettlementAutosaver(write, delay_seconds=60, archived_delay_seconds=60)
    yield saver
    for settlement_id in list(saver._pending):
        saver.discard(settlement_id)


@pytest.fixture
def fake_cache(monkeypatch) -> Dict[str, str]:
    """In-memory stand-in for Redis"""
    store: Dict[str, str] = {}

    async def fake_get(key):
        return store.get(key)

    async def fake_set(key, value, ttl=3600):
        store[key] = value
        return True

    monkeypatch.setattr(CacheService, "get", fake_get)
    monkeypatch.setattr(CacheService, "set", fake_set)
    return store


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, autosaver: SettlementAutosaver, fake_cache
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database, autosave and cache overrides"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settlement_autosaver] = lambda: autosaver

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db_session: AsyncSession, username: str) -> User:
    user = User(
        id=uuid4(),
        username=username,
        email=f"{username}@example.com",
        full_name=username.title(),
        hashed_password=hash_password("testpassword123"),
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """The treasurer who owns settlements in most tests"""
    return await _make_user(db_session, "testuser")


@pytest_asyncio.fixture
async def test_user2(db_session: AsyncSession) -> User:
    """A second registered user (not the owner)"""
    return await _make_user(db_session, "testuser2")


async def _login(client: AsyncClient, username: str) -> dict:
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": username, "password": "testpassword123"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def auth_headers(client: AsyncClient, test_user: User) -> dict:
    """Authorization headers for test_user"""
    return await _login(client, "testuser")


@pytest_asyncio.fixture
async def other_headers(client: AsyncClient, test_user2: User) -> dict:
    """Authorization headers for test_user2"""
    return await _login(client, "testuser2")


@pytest_asyncio.fixture
async def settlement_id(client: AsyncClient, auth_headers: dict) -> str:
    """An active settlement owned by test_user"""
    response = await client.post(
        "/api/v1/settlements",
        json={"title": "Team dinner"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()["id"]
