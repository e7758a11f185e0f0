# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Run command: one verification cycle for one task.

Exit codes: 0 consensus reached, 1 consensus failed (buyer refunded),
2 configuration or state error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from ...core.config import load_cycle_config
from ...core.exceptions import LinkGateException
from ...core.orchestrator import build_orchestrator
from ..output import output_error, output_result

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the run command on the CLI parser."""
    run_parser = subparsers.add_parser("run", help="Run one verification cycle")
    run_parser.add_argument("--config", "-c", required=True, help="Cycle config JSON file")
    run_parser.add_argument("--task-id", help="Task to verify (overrides taskId in the config)")
    run_parser.add_argument(
        "--lock",
        type=int,
        metavar="AMOUNT",
        help="Lock AMOUNT in escrow for the task before verifying",
    )
    run_parser.add_argument("--buyer", default="buyer", help="Buyer for --lock")
    run_parser.add_argument("--seller", default="seller", help="Seller for --lock")
    run_parser.set_defaults(func=cmd_run)


def cmd_run(args: argparse.Namespace) -> int:
    """Load the config, run the cycle and print the outcome."""
    try:
        config = load_cycle_config(args.config)
        if args.task_id:
            config = config.model_copy(update={"task_id": args.task_id})

        orchestrator = build_orchestrator()
        if args.lock is not None:
            orchestrator.escrow.lock_payment(config.task_id, args.seller, args.lock, buyer=args.buyer)

        outcome = asyncio.run(orchestrator.run_cycle(config))
    except LinkGateException as e:
        logger.debug("Cycle aborted", exc_info=True)
        output_error(e.message)
        return EXIT_ERROR

    output_result(outcome.to_dict(), args.output)
    return EXIT_SUCCESS if outcome.success else EXIT_FAILED
