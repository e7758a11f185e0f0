# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Constants for the consensus verification engine."""

from __future__ import annotations

# Canonical payload substituted for any result that cannot be trusted
FAILURE_SENTINEL = "__FAILED__"

# SLA defaults (seller-declared in production)
DEFAULT_MAX_RESPONSE_TIME_MS = 5000
DEFAULT_MIN_CONSENSUS_FRACTION = 0.67
DEFAULT_MIN_AGREEING_AGENTS = 2

# Per-call dispatch timeout; longer than the SLA so late answers are
# still observed and recorded as SLA violations
DEFAULT_AGENT_TIMEOUT_MS = 10000

# Number of redundant agents hired when the registry picks them
QUORUM_SIZE = 3

# Thresholds are declared in whole percent (0.67 for two thirds); a confidence
# that rounds to the threshold at this many decimals meets it, except for
# unanimity (1.0), which must be reached exactly
THRESHOLD_DECIMALS = 2
