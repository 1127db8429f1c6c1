from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

SCHEMA_VERSION = 1


class KeyValueStore(Protocol):
    """Synchronous key -> blob storage. The core never migrates blob schemas."""

    def get(self, key: str) -> bytes | None:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class MemoryStore:
    """In-process store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[str(key)] = bytes(value)

    def keys(self) -> list[str]:
        return sorted(self._data)


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                updated_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteStore:
    """File-backed store: one row per key, written through on every ``set``."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        if self._path.parent != Path(""):
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = open_db(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> bytes | None:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (str(key),)).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def set(self, key: str, value: bytes) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO kv(key, value, updated_at_utc) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at_utc = excluded.updated_at_utc
                """,
                (str(key), sqlite3.Binary(bytes(value)), _utc_now_iso()),
            )

    def close(self) -> None:
        self._conn.close()


def load_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Decode a JSON blob, falling back to ``default`` on missing or bad data."""

    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        logger.warning("Malformed data under key {!r}; using defaults", key)
        return default


def save_json(store: KeyValueStore, key: str, payload: Any) -> None:
    store.set(key, json.dumps(payload, separators=(",", ":")).encode("utf-8"))
