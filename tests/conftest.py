"""Shared fixtures: a file-backed SQLite client with the test tables created."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from records import COMIC_TITLES_DDL, ISSUES_DDL, LINKS_DDL, NOTES_DDL, PUBLISHERS_DDL, RecordingQueryLogger
from schemable import DBClient, create_test_db_client


@pytest.fixture
def query_log() -> RecordingQueryLogger:
    return RecordingQueryLogger()


@pytest.fixture
async def client(tmp_path: Path, query_log: RecordingQueryLogger) -> AsyncIterator[DBClient]:
    """Create a DBClient over a fresh SQLite file with every test table."""
    client = create_test_db_client(str(tmp_path / "schemable.db"))
    for ddl in (COMIC_TITLES_DDL, ISSUES_DDL, PUBLISHERS_DDL, NOTES_DDL, LINKS_DDL):
        await client.execute(ddl)
    client.set_logger(query_log)
    yield client
    await client.close()
