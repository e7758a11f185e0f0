# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""CLI command modules for LinkGate.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import agent, keygen, migrate, run
from .agent import cmd_agent_serve
from .keygen import cmd_keygen
from .migrate import cmd_migrate
from .run import cmd_run

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    run,
    keygen,
    agent,
    migrate,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_agent_serve",
    "cmd_keygen",
    "cmd_migrate",
    "cmd_run",
]
