# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Transactional key-value store with per-key compare-and-set.

Escrow entries and registry records live behind this abstraction. Nothing
outside the owning component (escrow ledger, agent registry) writes to it;
every mutation is a read → compute → compare-and-set on a single key, so two
concurrent writers to the same key can never both succeed.

Backends:
- ``InMemoryStore``: process-local, guarded by a lock (tests, single process).
- ``PostgresStore``: ``linkgate_kv`` table, versions checked in the UPDATE.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .exceptions import StoreException

logger = logging.getLogger(__name__)

MAX_CAS_RETRIES = 16


@dataclass(frozen=True)
class Versioned:
    """A stored value together with its write version (starts at 1)."""

    value: dict[str, Any]
    version: int


@runtime_checkable
class KeyValueStore(Protocol):
    """Store interface consumed by the escrow ledger and agent registry."""

    def get(self, key: str) -> Versioned | None:
        """Return the current value and version, or None if absent."""
        ...

    def put_if_absent(self, key: str, value: dict[str, Any]) -> bool:
        """Create ``key`` at version 1. False if it already exists."""
        ...

    def compare_and_set(self, key: str, expected_version: int, value: dict[str, Any]) -> bool:
        """Replace ``key`` only if its version is still ``expected_version``."""
        ...


class InMemoryStore:
    """Thread-safe in-process store."""

    def __init__(self) -> None:
        self._data: dict[str, Versioned] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Versioned | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            return Versioned(value=copy.deepcopy(entry.value), version=entry.version)

    def put_if_absent(self, key: str, value: dict[str, Any]) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = Versioned(value=copy.deepcopy(value), version=1)
            return True

    def compare_and_set(self, key: str, expected_version: int, value: dict[str, Any]) -> bool:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry.version != expected_version:
                return False
            self._data[key] = Versioned(value=copy.deepcopy(value), version=expected_version + 1)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class PostgresStore:
    """Store backed by the ``linkgate_kv`` table (see migrations/001)."""

    TABLE = "linkgate_kv"

    def __init__(self, cursor_factory: Callable[[], Any] | None = None) -> None:
        if cursor_factory is None:
            from .db import get_cursor

            cursor_factory = get_cursor
        self._cursor = cursor_factory

    def get(self, key: str) -> Versioned | None:
        import psycopg2

        try:
            with self._cursor() as cur:
                cur.execute(f"SELECT value, version FROM {self.TABLE} WHERE key = %s", (key,))
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StoreException(f"Failed to read {key}", {"key": key}) from e
        if row is None:
            return None
        return Versioned(value=row["value"], version=row["version"])

    def put_if_absent(self, key: str, value: dict[str, Any]) -> bool:
        import psycopg2
        from psycopg2.extras import Json

        try:
            with self._cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {self.TABLE} (key, value, version)
                    VALUES (%s, %s, 1)
                    ON CONFLICT (key) DO NOTHING
                    """,
                    (key, Json(value)),
                )
                return cur.rowcount == 1
        except psycopg2.Error as e:
            raise StoreException(f"Failed to create {key}", {"key": key}) from e

    def compare_and_set(self, key: str, expected_version: int, value: dict[str, Any]) -> bool:
        import psycopg2
        from psycopg2.extras import Json

        try:
            with self._cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE {self.TABLE}
                    SET value = %s, version = version + 1, updated_at = NOW()
                    WHERE key = %s AND version = %s
                    """,
                    (Json(value), key, expected_version),
                )
                return cur.rowcount == 1
        except psycopg2.Error as e:
            raise StoreException(f"Failed to update {key}", {"key": key}) from e


def update_with_retry(
    store: KeyValueStore,
    key: str,
    mutate: Callable[[dict[str, Any]], dict[str, Any]],
    on_missing: Callable[[], Exception],
) -> dict[str, Any]:
    """Apply ``mutate`` to ``key`` atomically, retrying lost CAS races.

    ``mutate`` receives a private copy of the current value and returns the
    new value; it may raise to reject the transition, in which case nothing
    is written. Every retry re-reads the value, so a rejection always
    reflects the latest committed state.

    Returns:
        The value that was written.

    Raises:
        Exception from ``on_missing()`` if the key does not exist.
        StoreException: If the key keeps changing under us.
    """
    for attempt in range(MAX_CAS_RETRIES):
        current = store.get(key)
        if current is None:
            raise on_missing()
        new_value = mutate(copy.deepcopy(current.value))
        if store.compare_and_set(key, current.version, new_value):
            return new_value
        logger.debug("CAS conflict on %s (attempt %d)", key, attempt + 1)
    raise StoreException(f"Too much contention on {key}", {"key": key, "attempts": MAX_CAS_RETRIES})


def create_store(backend: str | None = None) -> KeyValueStore:
    """Build the store selected by ``backend`` or ``LINKGATE_STORE_BACKEND``."""
    if backend is None:
        from .config import get_config

        backend = get_config().store_backend
    if backend == "postgres":
        return PostgresStore()
    if backend == "memory":
        return InMemoryStore()
    raise StoreException(f"Unknown store backend: {backend}", {"backend": backend})
