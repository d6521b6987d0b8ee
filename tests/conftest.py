"""
Shared pytest fixtures for the database, repositories, Redis and the API.
"""

from __future__ import annotations

import os

os.environ.setdefault("TRACING_ENABLED", "false")

from collections.abc import AsyncIterator  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession  # noqa: E402

from socialblog import database  # noqa: E402
from socialblog.clients import redis_client  # noqa: E402
from socialblog.config import settings  # noqa: E402
from socialblog.repositories import PostRepository, UserRepository  # noqa: E402
from socialblog.schemas import UserOut  # noqa: E402
from tests.factories import UserDataFactory  # noqa: E402

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingInvalidator:
    """Collects every invalidate() call instead of touching a cache."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []

    async def invalidate(self, *paths: str) -> None:
        self.calls.append(paths)

    @property
    def paths(self) -> set[str]:
        return {p for call in self.calls for p in call}

    def reset(self) -> None:
        self.calls.clear()


class _FakePipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._ops: list[tuple[str, tuple[Any, ...]]] = []

    def hset(self, *args: Any) -> "_FakePipeline":
        self._ops.append(("hset", args))
        return self

    def expire(self, *args: Any) -> "_FakePipeline":
        self._ops.append(("expire", args))
        return self

    async def execute(self) -> list[Any]:
        return [await getattr(self._redis, name)(*args) for name, args in self._ops]


class FakeRedis:
    """Minimal in-memory stand-in for the hash commands the view cache uses."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}

    async def hget(self, key: str, field: str) -> str | None:
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key: str, field: str, value: str) -> int:
        self.hashes.setdefault(key, {})[field] = value
        return 1

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return key in self.hashes

    async def delete(self, *keys: str) -> int:
        return sum(1 for k in keys if self.hashes.pop(k, None) is not None)

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self)


@pytest.fixture
async def db_engine(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory SQLite database with all tables, per test."""
    monkeypatch.setattr(settings, "database_url", SQLITE_URL)
    await database.dispose_engine()
    await database.init_db()
    try:
        yield await database.get_engine()
    finally:
        await database.dispose_engine()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    factory = await database.get_session_factory()
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def invalidator() -> RecordingInvalidator:
    return RecordingInvalidator()


@pytest.fixture
def users(db_session: AsyncSession, invalidator: RecordingInvalidator) -> UserRepository:
    return UserRepository(db_session, invalidator)


@pytest.fixture
def posts(db_session: AsyncSession, invalidator: RecordingInvalidator) -> PostRepository:
    return PostRepository(db_session, invalidator)


@pytest.fixture
async def alice(users: UserRepository) -> UserOut:
    return await users.create_user(UserDataFactory(username="alice", external_id="user_alice"))


@pytest.fixture
async def bob(users: UserRepository) -> UserOut:
    return await users.create_user(UserDataFactory(username="bob", external_id="user_bob"))


@pytest.fixture
def fake_redis() -> AsyncIterator[FakeRedis]:
    client = FakeRedis()
    redis_client.set_redis(client)  # type: ignore[arg-type]
    try:
        yield client
    finally:
        redis_client.set_redis(None)


@pytest.fixture
async def api(db_engine: AsyncEngine, fake_redis: FakeRedis) -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the ASGI app; lifespan is skipped, fixtures wire storage."""
    from socialblog.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
