"""Migration 001: Initial schema bootstrap.

Creates the key-value table behind the postgres store backend. Escrow tasks,
agent records, the registry index and recorded outcomes all live here, one
row per key; ``version`` drives compare-and-set updates.
"""

version = "001"
description = "initial_schema"


def up(conn) -> None:
    """Create the linkgate_kv table."""
    cur = conn.cursor()
    try:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS linkgate_kv (
                key TEXT PRIMARY KEY,
                value JSONB NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
    finally:
        cur.close()


def down(conn) -> None:
    """Drop the linkgate_kv table."""
    cur = conn.cursor()
    try:
        cur.execute("DROP TABLE IF EXISTS linkgate_kv")
    finally:
        cur.close()
