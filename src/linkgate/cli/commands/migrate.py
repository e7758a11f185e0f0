# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Migration commands for the postgres store backend.

Provides:
  linkgate migrate up [--dry-run]
  linkgate migrate down [--target VERSION] [--dry-run]
  linkgate migrate status
"""

from __future__ import annotations

import argparse
import logging

import psycopg2

from ...core.migrations import MigrationRunner
from ..output import output_error, output_result

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the migrate command on the CLI parser."""
    migrate_parser = subparsers.add_parser("migrate", help="Database migration management")
    migrate_parser.add_argument("--dir", dest="migrations_dir", help="Migrations directory")
    migrate_subparsers = migrate_parser.add_subparsers(dest="migrate_command", required=True)

    migrate_up = migrate_subparsers.add_parser("up", help="Apply pending migrations")
    migrate_up.add_argument("--dry-run", action="store_true", help="Show what would be applied")

    migrate_down = migrate_subparsers.add_parser("down", help="Roll back applied migrations")
    migrate_down.add_argument("--target", help="Keep this version applied and roll back newer ones")
    migrate_down.add_argument("--dry-run", action="store_true", help="Show what would be rolled back")

    migrate_subparsers.add_parser("status", help="Show migration status")

    migrate_parser.set_defaults(func=cmd_migrate)


def cmd_migrate(args: argparse.Namespace) -> int:
    """Dispatch migrate subcommands."""
    runner = MigrationRunner(migrations_dir=args.migrations_dir)
    try:
        if args.migrate_command == "up":
            applied = runner.up(dry_run=args.dry_run)
            output_result({"applied": applied, "dry_run": args.dry_run}, args.output)
        elif args.migrate_command == "down":
            rolled_back = runner.down(target=args.target, dry_run=args.dry_run)
            output_result({"rolled_back": rolled_back, "dry_run": args.dry_run}, args.output)
        else:
            statuses = runner.status()
            output_result(
                {"migrations": [{"version": s.version, "description": s.description, "state": s.state} for s in statuses]},
                args.output,
            )
    except psycopg2.Error as e:
        output_error(f"Migration failed: {e}")
        return 1
    return 0
