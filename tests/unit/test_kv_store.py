"""Unit tests for the SQLite key-value store."""

import pytest

from questlog.core.kv_store import KeyValueStore, StorageKeys


@pytest.mark.unit
class TestKeyValueStore:
    """Tests for KeyValueStore."""

    async def test_missing_key_reads_none(self, kv_store: KeyValueStore) -> None:
        assert await kv_store.read(StorageKeys.TASKS) is None

    async def test_write_then_read(self, kv_store: KeyValueStore) -> None:
        assert await kv_store.write(StorageKeys.MEMBERS, [{"id": "m1", "name": "Alice"}]) is True

        assert await kv_store.read(StorageKeys.MEMBERS) == [{"id": "m1", "name": "Alice"}]

    async def test_overwrite(self, kv_store: KeyValueStore) -> None:
        await kv_store.write(StorageKeys.SELECTED_MEMBER, "m1")
        await kv_store.write(StorageKeys.SELECTED_MEMBER, "m2")

        assert await kv_store.read(StorageKeys.SELECTED_MEMBER) == "m2"

    async def test_corrupt_record_reads_none(self, kv_store: KeyValueStore) -> None:
        conn = await kv_store._get_connection()
        await conn.execute("INSERT INTO kv_records (key, value) VALUES (?, ?)", (StorageKeys.TASKS, "{not json"))
        await conn.commit()

        assert await kv_store.read(StorageKeys.TASKS) is None

    async def test_size_ceiling_skips_write(self, tmp_path) -> None:
        store = KeyValueStore(tmp_path / "small.sqlite3", max_bytes=32)
        try:
            await store.write(StorageKeys.TASKS, [])
            assert await store.write(StorageKeys.TASKS, [{"title": "x" * 100}]) is False
            assert await store.read(StorageKeys.TASKS) == []
        finally:
            await store.close()

    async def test_unserializable_value(self, kv_store: KeyValueStore) -> None:
        assert await kv_store.write(StorageKeys.TASKS, {"when": object()}) is False

    async def test_clear(self, kv_store: KeyValueStore) -> None:
        await kv_store.write(StorageKeys.TASKS, [])
        await kv_store.write("unrelated", 1)

        await kv_store.clear()

        assert await kv_store.read(StorageKeys.TASKS) is None
        assert await kv_store.read("unrelated") == 1

    async def test_persists_across_connections(self, tmp_path) -> None:
        path = tmp_path / "reopen.sqlite3"
        first = KeyValueStore(path)
        await first.write(StorageKeys.TASKS, [{"id": "t1"}])
        await first.close()

        second = KeyValueStore(path)
        try:
            assert await second.read(StorageKeys.TASKS) == [{"id": "t1"}]
        finally:
            await second.close()
