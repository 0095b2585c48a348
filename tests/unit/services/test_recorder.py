"""Tests for Recorder: single-row load, insert, update and delete."""

import json

import pytest

from records import (
    ComicTitle,
    ComicTitles,
    Credits,
    FrozenComicTitle,
    FrozenComicTitles,
    Issue,
    Issues,
    Link,
    Links,
    Note,
    Notes,
    Publisher,
    Publishers,
    RecordingQueryLogger,
)
from schemable import DBClient, with_client
from schemable.errors import (
    BuilderCompositionError,
    NoClientInContextError,
    NoRowsError,
    ReflectionWritebackError,
)


def _make_title(id_two: int = 1, name: str = "one", volume: int = 0) -> ComicTitle:
    return ComicTitle(id_two=id_two, name=name, volume=volume)


class TestRecorderValues:
    """Tests for key and value projection without a database."""

    def test_where_ids_are_qualified(self) -> None:
        rec = ComicTitles.record(ComicTitle(id=7, id_two=2))

        assert rec.where_ids() == {"comic_titles.id": 7, "comic_titles.id_two": 2}

    def test_values_are_unqualified_non_keys(self) -> None:
        rec = ComicTitles.record(_make_title(name="one", volume=3))

        assert rec.values() == {"name": "one", "volume": 3}

    def test_values_project_aggregates_and_optionals(self) -> None:
        rec = Issues.record(Issue(title="Saga", tags=["space"], credits=Credits(writer="Vaughan")))

        values = rec.values()

        assert json.loads(values["tags"]) == ["space"]
        assert json.loads(values["credits"]) == {"writer": "Vaughan", "artist": None}
        assert values["note"] is None

    def test_updated_values_without_snapshot_is_everything(self) -> None:
        rec = ComicTitles.record(_make_title())

        assert rec.updated_values() == rec.values()

    def test_snapshot_is_a_copy(self) -> None:
        rec = ComicTitles.record(_make_title())
        rec._set_snapshot()

        rec.snapshot["name"] = "changed"

        assert rec.snapshot == {"name": "one", "volume": 0}

    async def test_operations_require_bound_client(self) -> None:
        rec = ComicTitles.record(_make_title())

        with pytest.raises(NoClientInContextError):
            await rec.insert()


class TestRecorderInsert:
    """Tests for insert and generated key write-back."""

    async def test_insert_writes_back_generated_id(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        rec = ComicTitles.record(_make_title(id_two=1, name="one"))

        with with_client(client):
            await rec.insert()

        assert rec.target.id == 1
        assert rec.snapshot == {"name": "one", "volume": 0}
        sql, params = query_log.queries[0]
        assert sql == "INSERT INTO comic_titles (id_two, name, volume) VALUES (?, ?, ?)"
        assert params == {"id_two": 1, "name": "one", "volume": 0}

    async def test_insert_without_auto_key(self, client: DBClient) -> None:
        rec = Publishers.record(Publisher(code="dc", name="DC", founded=1934))

        with with_client(client):
            await rec.insert()
            loaded = Publishers.record(Publisher(code="dc"))
            await loaded.load()

        assert loaded.target == Publisher(code="dc", name="DC", founded=1934)

    async def test_writeback_failure_raises(self, client: DBClient) -> None:
        rec = FrozenComicTitles.record(FrozenComicTitle(id_two=1, name="one"))

        with with_client(client):
            with pytest.raises(ReflectionWritebackError, match="could not set id to returned value") as exc_info:
                await rec.insert()

        assert exc_info.value.field_name == "id"
        assert rec.snapshot is None


class TestRecorderLoad:
    """Tests for load, load_where and exists."""

    async def test_load_fills_non_key_columns(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        with with_client(client):
            await ComicTitles.record(_make_title(id_two=1, name="one", volume=4)).insert()
            query_log.clear()

            rec = ComicTitles.record(ComicTitle(id=1, id_two=1))
            await rec.load()

        assert rec.target.name == "one"
        assert rec.target.volume == 4
        assert rec.snapshot == {"name": "one", "volume": 4}
        assert query_log.statements == [
            "SELECT comic_titles.name, comic_titles.volume FROM comic_titles "
            "WHERE comic_titles.id = ? AND comic_titles.id_two = ?"
        ]

    async def test_load_missing_row_raises(self, client: DBClient) -> None:
        rec = ComicTitles.record(ComicTitle(id=99, id_two=1))

        with with_client(client):
            with pytest.raises(NoRowsError):
                await rec.load()

        assert rec.snapshot is None

    async def test_load_where_fills_keys(self, client: DBClient) -> None:
        with with_client(client):
            await ComicTitles.record(_make_title(id_two=5, name="five")).insert()

            rec = ComicTitles.record()
            await rec.load_where(ComicTitles.c.name == "five")

        assert rec.target.id == 1
        assert rec.target.id_two == 5

    async def test_load_where_text_predicate(self, client: DBClient) -> None:
        with with_client(client):
            await ComicTitles.record(_make_title(id_two=5, name="five")).insert()

            rec = ComicTitles.record()
            await rec.load_where("name = :name", name="five")

        assert rec.target.id_two == 5

    async def test_load_decodes_aggregates(self, client: DBClient) -> None:
        issue = Issue(title="Saga", tags=["space", "war"], credits=Credits(writer="Vaughan", artist="Staples"))

        with with_client(client):
            await Issues.record(issue).insert()
            rec = Issues.record(Issue(id=issue.id))
            await rec.load()

        assert rec.target == issue

    async def test_exists(self, client: DBClient) -> None:
        rec = ComicTitles.record(_make_title())

        with with_client(client):
            assert not await rec.exists()
            await rec.insert()
            assert await rec.exists()
            assert await rec.exists_where({"comic_titles.name": "one"})
            assert not await rec.exists_where({"comic_titles.name": "two"})


class TestRecorderUpdate:
    """Tests for snapshot-diffed updates."""

    async def test_update_writes_only_changed_columns(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        rec = ComicTitles.record(_make_title(volume=1))

        with with_client(client):
            await rec.insert()
            query_log.clear()

            rec.target.volume = 201
            await rec.update()

            reloaded = ComicTitles.record(ComicTitle(id=rec.target.id, id_two=1))
            await reloaded.load()

        sql, params = query_log.queries[0]
        assert sql == "UPDATE comic_titles SET volume=? WHERE comic_titles.id = ? AND comic_titles.id_two = ?"
        assert 201 in params.values()
        assert rec.snapshot == {"name": "one", "volume": 201}
        assert reloaded.target.volume == 201

    async def test_update_without_changes_skips_database(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        rec = ComicTitles.record(_make_title())

        with with_client(client):
            await rec.insert()
            query_log.clear()

            await rec.update()

        assert query_log.queries == []

    async def test_no_op_update_needs_no_client(self, client: DBClient) -> None:
        rec = ComicTitles.record(_make_title())
        with with_client(client):
            await rec.insert()

        await rec.update()

    async def test_update_without_snapshot_writes_every_column(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        with with_client(client):
            await ComicTitles.record(_make_title(name="one", volume=9)).insert()
            query_log.clear()

            rec = ComicTitles.record(ComicTitle(id=1, id_two=1, volume=3))
            await rec.update()

            reloaded = ComicTitles.record(ComicTitle(id=1, id_two=1))
            await reloaded.load()

        assert query_log.statements[0].startswith("UPDATE comic_titles SET name=?, volume=?")
        assert reloaded.target.name == ""
        assert reloaded.target.volume == 3

    async def test_update_aggregate_change(self, client: DBClient) -> None:
        rec = Issues.record(Issue(title="Saga", tags=["space"]))

        with with_client(client):
            await rec.insert()
            rec.target.tags.append("war")
            assert set(rec.updated_values()) == {"tags"}
            await rec.update()

            reloaded = Issues.record(Issue(id=rec.target.id))
            await reloaded.load()

        assert reloaded.target.tags == ["space", "war"]


class TestRecorderStatementComposition:
    """Tests for record types whose key or value columns are missing."""

    async def test_update_with_only_key_columns_is_rejected(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        rec = Links.record(Link(a=1, b=2))

        with with_client(client):
            with pytest.raises(BuilderCompositionError, match="update has no columns to set"):
                await rec.update()

        assert query_log.queries == []
        assert rec.snapshot is None

    async def test_key_only_record_inserts_and_skips_update(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        rec = Links.record(Link(a=1, b=2))

        with with_client(client):
            await rec.insert()
            query_log.clear()
            await rec.update()

            assert await rec.exists()

        assert rec.snapshot == {}
        assert query_log.statements == ["SELECT COUNT(*) > 0 FROM links WHERE links.a = ? AND links.b = ?"]

    async def test_keyless_load_is_rejected(self, client: DBClient) -> None:
        with with_client(client):
            with pytest.raises(BuilderCompositionError, match="where clause is empty"):
                await Notes.record(Note(body="hello")).load()

    async def test_keyless_update_is_rejected(self, client: DBClient) -> None:
        with with_client(client):
            with pytest.raises(BuilderCompositionError, match="where clause is empty"):
                await Notes.record(Note(body="hello")).update()

    async def test_keyless_delete_is_rejected(self, client: DBClient) -> None:
        with with_client(client):
            await Notes.record(Note(body="hello")).insert()

            with pytest.raises(BuilderCompositionError, match="where clause is empty"):
                await Notes.record(Note(body="hello")).delete()

            assert len(await Notes.list_where()) == 1

    async def test_keyless_exists_is_rejected(
        self, client: DBClient, query_log: RecordingQueryLogger
    ) -> None:
        with with_client(client):
            with pytest.raises(BuilderCompositionError, match="where clause is empty"):
                await Notes.record(Note(body="hello")).exists()

        assert query_log.queries == []


class TestRecorderDelete:
    """Tests for delete."""

    async def test_delete_removes_row(self, client: DBClient, query_log: RecordingQueryLogger) -> None:
        rec = ComicTitles.record(_make_title())

        with with_client(client):
            await rec.insert()
            query_log.clear()
            await rec.delete()

            assert not await rec.exists()

        assert query_log.statements[0] == (
            "DELETE FROM comic_titles WHERE comic_titles.id = ? AND comic_titles.id_two = ?"
        )

    async def test_delete_missing_row_is_not_an_error(self, client: DBClient) -> None:
        rec = ComicTitles.record(ComicTitle(id=5, id_two=5))

        with with_client(client):
            await rec.delete()
