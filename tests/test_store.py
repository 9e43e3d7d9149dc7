"""Tests for the SQLite key-value store."""

import pytest

from cursor_chat_export.errors import StoreUnavailableError
from cursor_chat_export.store import GLOBAL_TABLE, WORKSPACE_TABLE, SqliteStore

from conftest import write_kv_db


@pytest.fixture
def item_db(tmp_path):
    return write_kv_db(tmp_path / "state.vscdb", WORKSPACE_TABLE, {
        "composer.composerData": {"allComposers": []},
        "blob.key": b'{"bytes": true}',
    })


class TestSqliteStore:
    def test_get(self, item_db):
        with SqliteStore(item_db) as store:
            assert store.get("composer.composerData") == '{"allComposers": []}'
            assert store.get("blob.key") == '{"bytes": true}'
            assert store.get("absent") is None

    def test_batch_get_across_chunks(self, tmp_path):
        items = {f"composerData:{i}": {"n": i} for i in range(1200)}
        db_path = write_kv_db(tmp_path / "global.vscdb", GLOBAL_TABLE, items)

        keys = list(items) + ["composerData:missing"]
        with SqliteStore(db_path, GLOBAL_TABLE) as store:
            rows = store.batch_get(keys)

        assert len(rows) == 1200
        assert dict(rows)["composerData:7"] == '{"n": 7}'

    def test_missing_file(self, tmp_path):
        with pytest.raises(StoreUnavailableError):
            SqliteStore(tmp_path / "nope.vscdb")

    def test_missing_table(self, item_db):
        with SqliteStore(item_db, GLOBAL_TABLE) as store:
            with pytest.raises(StoreUnavailableError):
                store.get("anything")

    def test_unknown_table_rejected(self, item_db):
        with pytest.raises(ValueError):
            SqliteStore(item_db, "sqlite_master")

    def test_closed_on_exit(self, item_db):
        with SqliteStore(item_db) as store:
            pass
        with pytest.raises(StoreUnavailableError):
            store.get("composer.composerData")

    def test_read_only(self, item_db):
        with SqliteStore(item_db) as store:
            with pytest.raises(StoreUnavailableError):
                store._query("DELETE FROM ItemTable", ())

    def test_query_deadline(self, item_db):
        sql = (
            "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c LIMIT 50000000) "
            "SELECT count(*) FROM c"
        )
        with SqliteStore(item_db, timeout=0.001) as store:
            with pytest.raises(StoreUnavailableError):
                store._query(sql, ())
