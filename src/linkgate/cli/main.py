# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""
LinkGate CLI - verification and settlement for redundant agent work.

Commands:
  linkgate run --config cycle.json      Run one verification cycle
  linkgate keygen                       Generate an agent identity
  linkgate agent serve                  Run the reference agent
  linkgate migrate up                   Apply postgres store migrations
  linkgate migrate down --target 001    Roll back newer migrations
"""

from __future__ import annotations

import argparse
import sys

from ..core.logging import configure_logging
from .commands import COMMAND_MODULES


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="linkgate",
        description="Verification and settlement for redundant agent work",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  linkgate keygen                                   New agent identity
  linkgate agent serve --port 4000                  Serve /predict
  linkgate run -c cycle.json                        Verify the task in cycle.json
  linkgate run -c cycle.json --task-id t-42 --lock 100
                                                    Lock 100 in escrow, then verify
        """,
    )
    parser.add_argument(
        "--output",
        "-o",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: LINKGATE_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
