"""
Unit tests for the lazily created, process-wide database engine.
"""

from __future__ import annotations

import asyncio

import pytest

from socialblog import database
from socialblog.config import settings
from socialblog.exceptions import StorageConnectionError
from tests.conftest import SQLITE_URL


@pytest.fixture(autouse=True)
async def _fresh_engine():
    await database.dispose_engine()
    yield
    await database.dispose_engine()


class TestGetEngine:
    @pytest.mark.asyncio
    async def test_concurrent_first_use_builds_one_engine(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Callers racing on first use all get the same engine."""
        monkeypatch.setattr(settings, "database_url", SQLITE_URL)
        built = []
        original = database._build_engine

        def counting_build(url: str):
            engine = original(url)
            built.append(engine)
            return engine

        monkeypatch.setattr(database, "_build_engine", counting_build)

        engines = await asyncio.gather(*(database.get_engine() for _ in range(5)))

        assert len(built) == 1
        assert all(e is engines[0] for e in engines)

    @pytest.mark.asyncio
    async def test_connection_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            settings, "database_url", "sqlite+aiosqlite:////nonexistent-dir/blog.db"
        )

        with pytest.raises(StorageConnectionError) as exc_info:
            await database.get_engine()
        assert exc_info.value.code == "DB_CONNECTION_ERROR"
        assert database._engine is None

    @pytest.mark.asyncio
    async def test_init_db_is_idempotent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "database_url", SQLITE_URL)
        await database.init_db()
        await database.init_db()
        factory = await database.get_session_factory()
        async with factory() as session:
            assert session.bind is await database.get_engine()


class TestSettings:
    def test_override_url_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "database_url", SQLITE_URL)
        assert settings.sqlalchemy_url == SQLITE_URL

    def test_default_url_points_at_tidb(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "database_url", None)
        url = settings.sqlalchemy_url
        assert url.startswith("mysql+aiomysql://")
        assert url.endswith(f"/{settings.tidb_database}")
