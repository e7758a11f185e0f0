# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""LinkGate - verification and settlement for redundant agent work.

The same task is dispatched to several independent, untrusted agents. Their
answers are collected, checked for provenance and latency, and reduced to a
single verdict that decides whether the escrowed payment is released to the
seller or refunded to the buyer.

Pipeline:
  Collector (concurrent dispatch, failures folded into sentinels)
    → Identity verifier (Ed25519 signature per result)
    → SLA filter (late answers never vote)
    → Consensus engine (majority of normalised payloads, confidence score)
    → Settlement coordinator (release | refund, exactly once)
    → Reputation ledger (bounded score, SLA counter, auto-deactivation)

CLI entry point: ``linkgate``
"""

__version__ = "1.0.0"

from . import (
    core as core,
)
