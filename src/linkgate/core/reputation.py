# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Bounded reputation scoring.

Pure functions; the agent registry owns the stored counters and is the only
caller that persists their results.

Per recorded outcome:
- success: +10, saturating at 1000
- failure: -50, floored at 0
- SLA violation (independent of success): violation counter +1 and an extra
  -20, floored at 0; a late but correct answer nets -10
- fifth SLA violation: the agent is deactivated for good
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ReputationConstants:
    """Constants for reputation calculations."""

    MIN_SCORE = 0
    MAX_SCORE = 1000
    INITIAL_SCORE = 500

    SUCCESS_REWARD = 10
    FAILURE_PENALTY = 50
    SLA_PENALTY = 20

    SLA_DEACTIVATION_THRESHOLD = 5


def saturating_add(
    value: int,
    delta: int,
    low: int = ReputationConstants.MIN_SCORE,
    high: int = ReputationConstants.MAX_SCORE,
) -> int:
    """``value + delta`` clamped into ``[low, high]``."""
    return max(low, min(high, value + delta))


@dataclass(frozen=True)
class ReputationChange:
    """Effect of one outcome on an agent's counters."""

    score_before: int
    score_after: int
    sla_violations_after: int
    deactivated: bool  # True only on the call that crossed the threshold

    @property
    def delta(self) -> int:
        return self.score_after - self.score_before

    def to_dict(self) -> dict[str, Any]:
        return {
            "score_before": self.score_before,
            "score_after": self.score_after,
            "delta": self.delta,
            "sla_violations_after": self.sla_violations_after,
            "deactivated": self.deactivated,
        }


def apply_outcome(
    score: int,
    sla_violations: int,
    is_active: bool,
    was_successful: bool,
    sla_violation: bool,
) -> ReputationChange:
    """Compute the new score and violation count for one outcome."""
    new_score = score
    if was_successful:
        new_score = saturating_add(new_score, ReputationConstants.SUCCESS_REWARD)
    else:
        new_score = saturating_add(new_score, -ReputationConstants.FAILURE_PENALTY)

    new_violations = sla_violations
    if sla_violation:
        new_violations += 1
        new_score = saturating_add(new_score, -ReputationConstants.SLA_PENALTY)

    deactivated = is_active and new_violations >= ReputationConstants.SLA_DEACTIVATION_THRESHOLD

    return ReputationChange(
        score_before=score,
        score_after=new_score,
        sla_violations_after=new_violations,
        deactivated=deactivated,
    )
