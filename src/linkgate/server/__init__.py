# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""LinkGate reference agent server.

Usage:
    # Start an agent (needs LINKGATE_AGENT_PRIVATE_KEY)
    linkgate agent serve --port 4000

    # Generate an identity
    linkgate keygen
"""

from .agent_app import create_agent_app, create_app_from_settings, run
from .results import ResultProvider, SportsResultProvider, StaticResultProvider

__all__ = [
    "create_agent_app",
    "create_app_from_settings",
    "run",
    "ResultProvider",
    "SportsResultProvider",
    "StaticResultProvider",
]
