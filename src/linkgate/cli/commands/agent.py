# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Agent commands: run the reference agent server."""

from __future__ import annotations

import argparse

from ...core.exceptions import ConfigException
from ..output import output_error


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the agent command group on the CLI parser."""
    agent_parser = subparsers.add_parser("agent", help="Reference agent server")
    agent_sub = agent_parser.add_subparsers(dest="agent_command", required=True)

    serve_parser = agent_sub.add_parser("serve", help="Serve /predict and /health")
    serve_parser.add_argument("--host", help="Bind host (default: LINKGATE_AGENT_HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: LINKGATE_AGENT_PORT)")
    serve_parser.set_defaults(func=cmd_agent_serve)


def cmd_agent_serve(args: argparse.Namespace) -> int:
    """Start the reference agent; blocks until interrupted."""
    from ...server.agent_app import run

    try:
        run(host=args.host, port=args.port)
    except ConfigException as e:
        output_error(e.message)
        return 2
    return 0
