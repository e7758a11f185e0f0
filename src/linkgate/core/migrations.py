# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Migration framework for the postgres store backend.

Provides sequential, versioned database migrations with:
- Auto-discovery from a migrations directory
- State tracking in a `_migrations` table
- Checksums for drift detection

Each migration file must define:
    version: str  - e.g. "001"
    description: str  - human-readable name
    def up(conn) -> None:  - apply migration (receives psycopg2 connection)
    def down(conn) -> None:  - rollback migration

Usage:
    runner = MigrationRunner(migrations_dir="/path/to/migrations")
    runner.up()          # apply all pending
    runner.down(target="001")  # roll back everything newer than 001
    runner.status()      # list applied/pending
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)

# The table used to track applied migrations
MIGRATIONS_TABLE = "_migrations"


@dataclass
class MigrationInfo:
    """Metadata about a discovered migration."""

    version: str
    description: str
    checksum: str
    file_path: Path
    module: ModuleType

    def __lt__(self, other: MigrationInfo) -> bool:
        return self.version < other.version


@dataclass
class MigrationStatus:
    """Status of a single migration: applied, pending, or checksum mismatch."""

    version: str
    description: str
    state: str  # "applied", "pending", "checksum_mismatch"
    applied_at: datetime | None = None


class MigrationRunner:
    """Discovers, tracks, and applies database migrations.

    Args:
        migrations_dir: Path to directory containing NNN_description.py files.
        connection_factory: Callable returning a context manager that yields a
            psycopg2 connection. Defaults to ``linkgate.core.db.get_connection``.
    """

    def __init__(
        self,
        migrations_dir: str | Path | None = None,
        connection_factory: Callable[[], AbstractContextManager[Any]] | None = None,
    ):
        if migrations_dir is None:
            # Default: <repo_root>/migrations
            migrations_dir = Path(__file__).resolve().parent.parent.parent.parent / "migrations"
        self.migrations_dir = Path(migrations_dir)
        if connection_factory is None:
            from .db import get_connection

            connection_factory = get_connection
        self._connection_factory = connection_factory
        self._migrations: list[MigrationInfo] | None = None

    @staticmethod
    def _compute_checksum(file_path: Path) -> str:
        """Compute SHA-256 checksum of a migration file."""
        return hashlib.sha256(file_path.read_bytes()).hexdigest()[:16]

    @staticmethod
    def _load_module(file_path: Path) -> ModuleType:
        """Dynamically load a Python migration module."""
        module_name = f"linkgate_migration_{file_path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise ValueError(f"Cannot load migration: {file_path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def discover(self) -> list[MigrationInfo]:
        """Discover all migration files in migrations_dir, sorted by version."""
        if self._migrations is not None:
            return self._migrations

        migrations: list[MigrationInfo] = []
        if not self.migrations_dir.is_dir():
            logger.warning(f"Migrations directory not found: {self.migrations_dir}")
            self._migrations = []
            return []

        for path in sorted(self.migrations_dir.glob("*.py")):
            # Expect NNN_description.py
            parts = path.stem.split("_", 1)
            if len(parts) < 2 or not parts[0].isdigit():
                logger.debug(f"Skipping non-migration file: {path.name}")
                continue

            module = self._load_module(path)
            for attr in ("version", "description", "up", "down"):
                if not hasattr(module, attr):
                    raise ValueError(f"Migration {path.name} missing required attribute: {attr}")

            migrations.append(
                MigrationInfo(
                    version=module.version,
                    description=module.description,
                    checksum=self._compute_checksum(path),
                    file_path=path,
                    module=module,
                )
            )

        migrations.sort()
        self._migrations = migrations
        return migrations

    def _ensure_table(self, conn: Any) -> None:
        """Create the _migrations tracking table if it doesn't exist."""
        with conn.cursor() as cur:
            cur.execute(f"""
                CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
                    version TEXT PRIMARY KEY,
                    description TEXT NOT NULL,
                    checksum TEXT NOT NULL,
                    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)
        conn.commit()

    def _get_applied(self, conn: Any) -> dict[str, dict[str, Any]]:
        """Applied migrations from the DB, keyed by version."""
        self._ensure_table(conn)
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(f"SELECT version, checksum, applied_at FROM {MIGRATIONS_TABLE} ORDER BY version")
            return {row["version"]: row for row in cur.fetchall()}

    def status(self) -> list[MigrationStatus]:
        """Return status of all migrations (applied/pending/checksum_mismatch)."""
        migrations = self.discover()
        with self._connection_factory() as conn:
            applied = self._get_applied(conn)

        result: list[MigrationStatus] = []
        for m in migrations:
            row = applied.get(m.version)
            if row is None:
                result.append(MigrationStatus(m.version, m.description, "pending"))
                continue
            state = "applied" if row["checksum"] == m.checksum else "checksum_mismatch"
            result.append(MigrationStatus(m.version, m.description, state, row["applied_at"]))
        return result

    def up(self, *, dry_run: bool = False) -> list[str]:
        """Apply pending migrations.

        Returns:
            List of applied version strings.
        """
        migrations = self.discover()
        applied_versions: list[str] = []

        with self._connection_factory() as conn:
            applied = self._get_applied(conn)
            to_apply = [m for m in migrations if m.version not in applied]
            if not to_apply:
                logger.info("No pending migrations to apply.")
                return []

            for migration in to_apply:
                if dry_run:
                    logger.info(f"[DRY RUN] Would apply: {migration.version} - {migration.description}")
                    applied_versions.append(migration.version)
                    continue

                logger.info(f"Applying migration {migration.version}: {migration.description}")
                try:
                    migration.module.up(conn)
                    with conn.cursor() as cur:
                        cur.execute(
                            f"INSERT INTO {MIGRATIONS_TABLE} (version, description, checksum) VALUES (%s, %s, %s)",
                            (migration.version, migration.description, migration.checksum),
                        )
                    conn.commit()
                except Exception as e:
                    conn.rollback()
                    logger.error(f"Failed {migration.version}: {e}")
                    raise
                applied_versions.append(migration.version)

        return applied_versions

    def down(self, *, target: str | None = None, dry_run: bool = False) -> list[str]:
        """Roll back applied migrations.

        Args:
            target: Roll back everything newer than this version (which stays
                applied). None rolls back only the latest migration.
            dry_run: Only report what would be rolled back.

        Returns:
            List of rolled-back version strings, newest first.
        """
        migration_map = {m.version: m for m in self.discover()}
        rolled_back: list[str] = []

        with self._connection_factory() as conn:
            to_rollback = sorted(self._get_applied(conn), reverse=True)
            if target is not None:
                to_rollback = [v for v in to_rollback if v > target]
            else:
                to_rollback = to_rollback[:1]

            if not to_rollback:
                logger.info("No migrations to roll back.")
                return []

            for version in to_rollback:
                migration = migration_map.get(version)
                if migration is None:
                    logger.warning(f"Migration file for version {version} not found, skipping rollback")
                    continue

                if dry_run:
                    logger.info(f"[DRY RUN] Would roll back: {version} - {migration.description}")
                    rolled_back.append(version)
                    continue

                logger.info(f"Rolling back migration {version}: {migration.description}")
                try:
                    migration.module.down(conn)
                    with conn.cursor() as cur:
                        cur.execute(f"DELETE FROM {MIGRATIONS_TABLE} WHERE version = %s", (version,))
                    conn.commit()
                except Exception as e:
                    conn.rollback()
                    logger.error(f"Failed rollback {version}: {e}")
                    raise
                rolled_back.append(version)

        return rolled_back
