"""Key/value persistence for closet collections.

Every value is serialised whole as JSON under ``(collection, key)``. The
collections are fixed; user data is partitioned by username used as the key,
the session pointer lives under a fixed key.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

LOGGER = logging.getLogger(__name__)


class Collection(str, Enum):
    ITEMS = "items"
    OUTFITS = "outfits"
    CALENDAR = "calendar"
    PROFILE = "profile"
    SESSION = "user_meta"


class StorageError(Exception):
    """Base class for persistence failures surfaced to the user."""


class StorageUnavailableError(StorageError):
    """The backing store could not be opened, read or written."""


class QuotaExceededError(StorageError):
    """A value is larger than the configured storage quota."""


def _collection(value: Collection | str) -> Collection:
    try:
        return Collection(value)
    except ValueError as exc:
        allowed = [c.value for c in Collection]
        raise ValueError(f"Unknown collection '{value}'. Allowed: {allowed}") from exc


class KeyValueStore:
    """Async persistence interface keyed by ``(collection, key)``."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes

    def _serialise(self, collection: Collection, key: str, value: Any) -> str:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Value for {collection.value}/{key} is not JSON serialisable") from exc
        size = len(raw.encode("utf-8"))
        if self.quota_bytes is not None and size > self.quota_bytes:
            raise QuotaExceededError(
                f"{collection.value}/{key} needs {size} bytes, quota is {self.quota_bytes}"
            )
        return raw

    async def put(self, collection: Collection | str, key: str, value: Any) -> None:
        target = _collection(collection)
        raw = self._serialise(target, key, value)
        await self._put_raw(target, key, raw)

    async def get(self, collection: Collection | str, key: str) -> Any:
        raw = await self._get_raw(_collection(collection), key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageUnavailableError(f"Corrupt record {collection}/{key}") from exc

    async def delete(self, collection: Collection | str, key: str) -> None:
        await self._delete_raw(_collection(collection), key)

    async def _put_raw(self, collection: Collection, key: str, raw: str) -> None:
        raise NotImplementedError

    async def _get_raw(self, collection: Collection, key: str) -> Optional[str]:
        raise NotImplementedError

    async def _delete_raw(self, collection: Collection, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store for tests and offline runs.

    Setting ``available`` to False makes every call fail like an unreachable
    database.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self.records: Dict[Tuple[str, str], str] = {}
        self.available = True
        self.writes = 0

    def _check(self) -> None:
        if not self.available:
            raise StorageUnavailableError("in-memory store is unavailable")

    async def _put_raw(self, collection: Collection, key: str, raw: str) -> None:
        self._check()
        self.records[(collection.value, key)] = raw
        self.writes += 1

    async def _get_raw(self, collection: Collection, key: str) -> Optional[str]:
        self._check()
        return self.records.get((collection.value, key))

    async def _delete_raw(self, collection: Collection, key: str) -> None:
        self._check()
        self.records.pop((collection.value, key), None)


class JSONKeyValueStore(KeyValueStore):
    """JSON-file-backed store suitable for local runs."""

    def __init__(self, base_dir: str | Path = "data/closet", quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self.base_dir = Path(base_dir)
        try:
            for collection in Collection:
                (self.base_dir / collection.value).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot create store at {self.base_dir}") from exc

    def _path(self, collection: Collection, key: str) -> Path:
        # Percent-encoded UTF-8 bytes: distinct keys never share a file.
        safe_key = quote(key, safe="-_.")
        return self.base_dir / collection.value / f"{safe_key}.json"

    async def _put_raw(self, collection: Collection, key: str, raw: str) -> None:
        try:
            await asyncio.to_thread(self._path(collection, key).write_text, raw, "utf-8")
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot write {collection.value}/{key}") from exc

    async def _get_raw(self, collection: Collection, key: str) -> Optional[str]:
        path = self._path(collection, key)
        if not path.exists():
            return None
        try:
            return await asyncio.to_thread(path.read_text, "utf-8")
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot read {collection.value}/{key}") from exc

    async def _delete_raw(self, collection: Collection, key: str) -> None:
        try:
            self._path(collection, key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot delete {collection.value}/{key}") from exc


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed store with one table per collection."""

    def __init__(self, db_path: str | Path = "data/closet.db", quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Cannot open {self.db_path}") from exc

    def _init_schema(self) -> None:
        statements = "\n".join(
            f"CREATE TABLE IF NOT EXISTS {collection.value} (key TEXT PRIMARY KEY, value TEXT NOT NULL);"
            for collection in Collection
        )
        self._run(lambda conn: conn.executescript(statements))

    def _run(self, operation):
        conn = self._connect()
        try:
            with conn:
                return operation(conn)
        except sqlite3.OperationalError as exc:
            if "full" in str(exc).lower():
                raise QuotaExceededError(str(exc)) from exc
            raise StorageUnavailableError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise StorageUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    async def _put_raw(self, collection: Collection, key: str, raw: str) -> None:
        sql = (
            f"INSERT INTO {collection.value}(key, value) VALUES (?, ?)\n"
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value"
        )
        await asyncio.to_thread(self._run, lambda conn: conn.execute(sql, (key, raw)))

    async def _get_raw(self, collection: Collection, key: str) -> Optional[str]:
        def fetch(conn: sqlite3.Connection) -> Optional[str]:
            row = conn.execute(
                f"SELECT value FROM {collection.value} WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None

        return await asyncio.to_thread(self._run, fetch)

    async def _delete_raw(self, collection: Collection, key: str) -> None:
        await asyncio.to_thread(
            self._run,
            lambda conn: conn.execute(f"DELETE FROM {collection.value} WHERE key = ?", (key,)),
        )


def build_store(backend: str, path: Optional[str] = None, quota_bytes: Optional[int] = None) -> KeyValueStore:
    """Instantiate the configured backend."""

    if backend == "memory":
        return InMemoryKeyValueStore(quota_bytes=quota_bytes)
    if backend == "json":
        return JSONKeyValueStore(path or "data/closet", quota_bytes=quota_bytes)
    LOGGER.debug("Using SQLite key/value store", extra={"path": path or "data/closet.db"})
    return SQLiteKeyValueStore(path or "data/closet.db", quota_bytes=quota_bytes)


__all__ = [
    "Collection",
    "InMemoryKeyValueStore",
    "JSONKeyValueStore",
    "KeyValueStore",
    "QuotaExceededError",
    "SQLiteKeyValueStore",
    "StorageError",
    "StorageUnavailableError",
    "build_store",
]
