"""Key/value store backends: round trips, quota and failure mapping."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from memory.kv_store import (
    Collection,
    InMemoryKeyValueStore,
    JSONKeyValueStore,
    QuotaExceededError,
    SQLiteKeyValueStore,
    StorageUnavailableError,
    build_store,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def store(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    if request.param == "json":
        return JSONKeyValueStore(base_dir=tmp_path / "closet")
    return SQLiteKeyValueStore(db_path=tmp_path / "closet.db")


def test_put_get_delete_roundtrip(store) -> None:
    async def scenario():
        items = [{"id": "1", "name": "Yellow Owl Tee", "tags": ["Summer", "Casual"]}]
        await store.put(Collection.ITEMS, "alice", items)
        assert await store.get(Collection.ITEMS, "alice") == items
        assert await store.get(Collection.ITEMS, "bob") is None

        await store.put("items", "alice", [])
        assert await store.get(Collection.ITEMS, "alice") == []

        await store.delete(Collection.ITEMS, "alice")
        assert await store.get(Collection.ITEMS, "alice") is None
        # Deleting a missing key is a no-op.
        await store.delete(Collection.ITEMS, "alice")

    asyncio.run(scenario())


def test_collections_are_isolated(store) -> None:
    async def scenario():
        await store.put(Collection.CALENDAR, "alice", {"2026-10-17": "outfit-1"})
        await store.put(Collection.PROFILE, "alice", {"name": "Alice"})
        assert await store.get(Collection.CALENDAR, "alice") == {"2026-10-17": "outfit-1"}
        assert await store.get(Collection.PROFILE, "alice") == {"name": "Alice"}
        assert await store.get(Collection.OUTFITS, "alice") is None

    asyncio.run(scenario())


def test_unknown_collection_rejected(store) -> None:
    with pytest.raises(ValueError):
        asyncio.run(store.put("wishlist", "alice", []))


def test_quota_exceeded_leaves_previous_value() -> None:
    store = InMemoryKeyValueStore(quota_bytes=64)

    async def scenario():
        await store.put(Collection.ITEMS, "alice", [{"id": "1"}])
        with pytest.raises(QuotaExceededError):
            await store.put(Collection.ITEMS, "alice", [{"id": "x" * 100}])
        return await store.get(Collection.ITEMS, "alice")

    assert asyncio.run(scenario()) == [{"id": "1"}]


def test_unavailable_store_raises_storage_error() -> None:
    store = InMemoryKeyValueStore()
    store.available = False
    with pytest.raises(StorageUnavailableError):
        asyncio.run(store.get(Collection.SESSION, "current-session"))


def test_corrupt_json_record_is_reported(tmp_path: Path) -> None:
    store = JSONKeyValueStore(base_dir=tmp_path)
    (tmp_path / "items" / "alice.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageUnavailableError):
        asyncio.run(store.get(Collection.ITEMS, "alice"))


def test_json_store_escapes_keys(tmp_path: Path) -> None:
    store = JSONKeyValueStore(base_dir=tmp_path)

    async def scenario():
        await store.put(Collection.PROFILE, "../alice smith", {"name": "Alice"})
        return await store.get(Collection.PROFILE, "../alice smith")

    assert asyncio.run(scenario()) == {"name": "Alice"}
    written = list((tmp_path / "profile").iterdir())
    assert len(written) == 1
    assert "/" not in written[0].name and " " not in written[0].name


def test_sqlite_store_persists_across_instances(tmp_path: Path) -> None:
    db_path = tmp_path / "closet.db"
    asyncio.run(SQLiteKeyValueStore(db_path).put(Collection.SESSION, "current-session", {"username": "alice"}))

    reopened = SQLiteKeyValueStore(db_path)
    assert asyncio.run(reopened.get(Collection.SESSION, "current-session")) == {"username": "alice"}


def test_build_store_selects_backend(tmp_path: Path) -> None:
    assert isinstance(build_store("memory"), InMemoryKeyValueStore)
    assert isinstance(build_store("json", str(tmp_path / "json")), JSONKeyValueStore)
    assert isinstance(build_store("sqlite", str(tmp_path / "db.sqlite")), SQLiteKeyValueStore)


def test_json_store_keeps_non_ascii_keys_apart(tmp_path: Path) -> None:
    store = JSONKeyValueStore(base_dir=tmp_path)
    combining_then_zero = "\u0300" + "0"
    ideographic_space = "\u3000"

    async def scenario():
        await store.put(Collection.ITEMS, combining_then_zero, ["first user"])
        await store.put(Collection.ITEMS, ideographic_space, ["second user"])
        await store.put(Collection.ITEMS, "zoë", ["third user"])
        return [
            await store.get(Collection.ITEMS, combining_then_zero),
            await store.get(Collection.ITEMS, ideographic_space),
            await store.get(Collection.ITEMS, "zoë"),
        ]

    assert asyncio.run(scenario()) == [["first user"], ["second user"], ["third user"]]
    assert len(list((tmp_path / "items").iterdir())) == 3
