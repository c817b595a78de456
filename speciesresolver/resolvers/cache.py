from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

SECONDS_PER_DAY = 86_400


@dataclass(slots=True)
class DiskCacheConfig:
    path: Path
    ttl_days: int = 7
    schema_version: int = 1


class DiskCache:
    """Taxonomy provider responses keyed by endpoint, lookup key and locale.

    Only successful payloads are stored. Rows older than ``ttl_days`` are
    ignored on read and purged whenever the cache is opened.
    """

    def __init__(
        self, config: DiskCacheConfig, *, clock: Callable[[], float] = time.time
    ) -> None:
        self._config = config
        self._clock = clock
        self._ensure_schema()
        self.purge_expired()

    @property
    def _ttl_seconds(self) -> float:
        return self._config.ttl_days * SECONDS_PER_DAY

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._config.path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        self._config.path.parent.mkdir(parents=True, exist_ok=True)
        expected = self._config.schema_version
        with self._connection() as conn:
            (version,) = conn.execute("PRAGMA user_version").fetchone()
            if version == expected:
                return
            if version != 0:
                raise ValueError(
                    f"Cache schema version mismatch: expected {expected}, got {version}"
                )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS provider_cache (
                    endpoint TEXT NOT NULL,
                    lookup_key TEXT NOT NULL,
                    locale TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    stored_at REAL NOT NULL,
                    PRIMARY KEY (endpoint, lookup_key, locale)
                )
                """
            )
            conn.execute(f"PRAGMA user_version = {expected}")

    def get(self, endpoint: str, key: str, locale: str) -> dict[str, Any] | None:
        oldest = self._clock() - self._ttl_seconds
        with self._connection() as conn:
            row = conn.execute(
                "SELECT payload FROM provider_cache"
                " WHERE endpoint = ? AND lookup_key = ? AND locale = ? AND stored_at >= ?",
                (endpoint, key, locale, oldest),
            ).fetchone()
        return None if row is None else json.loads(row[0])

    def put(self, endpoint: str, key: str, locale: str, response: dict[str, Any]) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO provider_cache"
                " (endpoint, lookup_key, locale, payload, stored_at) VALUES (?, ?, ?, ?, ?)",
                (endpoint, key, locale, json.dumps(response, ensure_ascii=False), self._clock()),
            )

    def purge_expired(self) -> int:
        """Delete stale rows; returns how many were removed."""
        oldest = self._clock() - self._ttl_seconds
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM provider_cache WHERE stored_at < ?", (oldest,))
        return cursor.rowcount


__all__ = ["DiskCache", "DiskCacheConfig"]
