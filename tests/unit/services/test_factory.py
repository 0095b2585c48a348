"""Tests for the client factory module."""

from pathlib import Path

import pytest

from schemable.config import Settings
from schemable.services.client import DBClient, NoQueryLogger, StructlogQueryLogger
from schemable.services.factory import (
    create_db_client,
    create_db_client_from_settings,
    create_test_db_client,
    sqlite_url,
)


class TestCreateDbClient:
    """Tests for create_db_client."""

    async def test_creates_client_for_url(self, tmp_path: Path) -> None:
        client = create_db_client(f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")

        try:
            assert isinstance(client, DBClient)
            assert client.builder.dialect.name == "sqlite"
            assert isinstance(client.query_logger, NoQueryLogger)
        finally:
            await client.close()

    async def test_connects_lazily(self, tmp_path: Path) -> None:
        db_path = tmp_path / "lazy.db"

        client = create_db_client(sqlite_url(str(db_path)))
        assert not db_path.exists()

        await client.ping()
        await client.close()

        assert db_path.exists()

    async def test_echo_is_passed_to_engine(self, tmp_path: Path) -> None:
        client = create_db_client(sqlite_url(str(tmp_path / "echo.db")), echo=True)

        try:
            assert client.db.sync_engine.echo is True
        finally:
            await client.close()


class TestCreateTestDbClient:
    """Tests for create_test_db_client."""

    async def test_in_memory_by_default(self) -> None:
        async with create_test_db_client() as client:
            assert client.db.url.database == ":memory:"
            await client.ping()

    async def test_in_memory_data_persists_across_statements(self) -> None:
        async with create_test_db_client() as client:
            await client.execute("CREATE TABLE kv (k TEXT)")
            await client.execute("INSERT INTO kv (k) VALUES ('a')")
            row = await client.query_row("SELECT COUNT(*) FROM kv")

        assert row[0] == 1

    async def test_uses_given_path(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"

        async with create_test_db_client(str(db_path)) as client:
            await client.ping()

        assert db_path.exists()


class TestCreateDbClientFromSettings:
    """Tests for create_db_client_from_settings."""

    async def test_uses_settings_url(self, tmp_path: Path) -> None:
        settings = Settings(database_url=sqlite_url(str(tmp_path / "settings.db")))

        async with create_db_client_from_settings(settings) as client:
            assert client.db.url.database == str(tmp_path / "settings.db")

    @pytest.mark.parametrize(
        ("log_queries", "expected"),
        [(False, NoQueryLogger), (True, StructlogQueryLogger)],
    )
    async def test_query_logging_follows_settings(
        self, tmp_path: Path, log_queries: bool, expected: type
    ) -> None:
        settings = Settings(
            database_url=sqlite_url(str(tmp_path / "settings.db")),
            log_queries=log_queries,
        )

        async with create_db_client_from_settings(settings) as client:
            assert isinstance(client.query_logger, expected)


class TestSqliteUrl:
    """Tests for sqlite_url."""

    def test_memory(self) -> None:
        assert sqlite_url(":memory:") == "sqlite+aiosqlite:///:memory:"

    def test_path(self) -> None:
        assert sqlite_url("/tmp/app.db") == "sqlite+aiosqlite:////tmp/app.db"
