# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Database connection management for the postgres store backend.

Config via LINKGATE_DB_* environment variables (see ``CoreSettings``).
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from psycopg2 import pool as psycopg2_pool
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError

logger = logging.getLogger(__name__)

# Connection pool (lazy init, thread-safe)
_pool: psycopg2_pool.ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def _get_pool() -> psycopg2_pool.ThreadedConnectionPool:
    """Get or create the connection pool."""
    from .config import get_config

    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                config = get_config()
                _pool = psycopg2_pool.ThreadedConnectionPool(
                    minconn=config.db_pool_min,
                    maxconn=config.db_pool_max,
                    **config.connection_params,
                )
                logger.info("Opened connection pool to %s:%s/%s", config.db_host, config.db_port, config.db_name)
    return _pool


def _get_conn_with_timeout(pool: psycopg2_pool.ThreadedConnectionPool, timeout: int) -> Any:
    """Get a connection from pool with timeout.

    Raises:
        PoolError: If timeout expires before connection is available
    """
    result_queue: queue.Queue = queue.Queue()

    def _get_conn():
        try:
            conn = pool.getconn()
            result_queue.put(("success", conn))
        except Exception as e:
            result_queue.put(("error", e))

    thread = threading.Thread(target=_get_conn, daemon=True)
    thread.start()

    try:
        result_type, result_value = result_queue.get(timeout=timeout)
        if result_type == "error":
            raise result_value
        return result_value
    except queue.Empty:
        raise PoolError(f"Connection pool timeout after {timeout} seconds")


def _validate_connection(conn: Any) -> bool:
    """Check if a connection is valid and healthy."""
    if conn.closed:
        return False

    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
        return True
    except Exception:
        return False


def _get_healthy_connection(pool: psycopg2_pool.ThreadedConnectionPool, timeout: int) -> Any:
    """Get a healthy connection from pool, discarding stale ones.

    Raises:
        PoolError: If unable to get a healthy connection
    """
    max_attempts = 3
    for _ in range(max_attempts):
        conn = _get_conn_with_timeout(pool, timeout)
        if _validate_connection(conn):
            return conn
        logger.debug("Discarding stale pooled connection")
        pool.putconn(conn, close=True)

    raise PoolError("Failed to get healthy connection after multiple attempts")


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Get a database cursor with auto-commit on success, rollback on error.

    Usage:
        with get_cursor() as cur:
            cur.execute("SELECT value FROM linkgate_kv WHERE key = %s", (key,))
            row = cur.fetchone()
    """
    from .config import get_config

    pool = _get_pool()
    config = get_config()
    conn = _get_healthy_connection(pool, config.db_pool_timeout)
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


@contextmanager
def get_connection() -> Generator[Any, None, None]:
    """Get a database connection from the pool.

    For cases that need connection-level control (like migrations).
    """
    from .config import get_config

    pool = _get_pool()
    config = get_config()
    conn = _get_healthy_connection(pool, config.db_pool_timeout)
    try:
        yield conn
    finally:
        pool.putconn(conn)


def close_pool() -> None:
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
