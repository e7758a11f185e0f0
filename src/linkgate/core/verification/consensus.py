# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Majority-agreement consensus over on-time, identity-verified results.

Payloads are grouped by a normalised key (trimmed, case-folded). All group
counts are computed before any decision is taken; the majority is the
largest group, and among equally large groups the one seen first in arrival
order wins. Two runs over identically ordered input therefore always pick the
same group.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import reduce

from .constants import THRESHOLD_DECIMALS
from .models import SLA, AgentResult

logger = logging.getLogger(__name__)


def normalize_payload(payload: str) -> str:
    """Grouping key for a result payload."""
    return payload.strip().casefold()


def meets_threshold(confidence: float, threshold: float) -> bool:
    """True if ``confidence`` reaches ``threshold``.

    2/3 meets 0.67 and 0.745 does not meet 0.75; a threshold of 1.0 needs
    every vote.
    """
    if confidence >= threshold:
        return True
    return threshold < 1.0 and round(confidence, THRESHOLD_DECIMALS) >= threshold


@dataclass
class ResultGroup:
    """Results sharing one normalised payload."""

    key: str
    first_payload: str  # original casing/formatting of the first member
    members: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass
class ConsensusTally:
    """Fold state: groups in first-seen order."""

    groups: dict[str, ResultGroup] = field(default_factory=dict)
    total: int = 0

    def add(self, result: AgentResult) -> ConsensusTally:
        key = normalize_payload(result.payload)
        group = self.groups.get(key)
        if group is None:
            group = ResultGroup(key=key, first_payload=result.payload)
            self.groups[key] = group
        group.members.append(result.agent_address)
        self.total += 1
        return self

    def majority(self) -> ResultGroup | None:
        """Largest group; the earliest-seen one on ties."""
        best: ResultGroup | None = None
        for group in self.groups.values():
            if best is None or group.size > best.size:
                best = group
        return best

    def counts(self) -> dict[str, int]:
        return {key: group.size for key, group in self.groups.items()}


def tally_results(results: Iterable[AgentResult]) -> ConsensusTally:
    """Fold results into per-group counts, preserving arrival order."""
    return reduce(lambda tally, r: tally.add(r), results, ConsensusTally())


@dataclass(frozen=True)
class ConsensusDecision:
    """Verdict of the consensus stage alone.

    ``consensus_result`` is the first-seen payload of the majority group even
    when the vote failed; ``passed`` carries the verdict.
    """

    consensus_result: str | None
    confidence_score: float
    agents_agreed: int
    passed: bool
    agreeing_agents: tuple[str, ...]
    dissenting_agents: tuple[str, ...]
    group_counts: dict[str, int]


class ConsensusEngine:
    """Applies the SLA's agreement threshold to a tally."""

    def __init__(self, sla: SLA):
        self.sla = sla

    def decide(self, results: Iterable[AgentResult]) -> ConsensusDecision:
        tally = tally_results(results)
        majority = tally.majority()

        if majority is None:
            return ConsensusDecision(
                consensus_result=None,
                confidence_score=0.0,
                agents_agreed=0,
                passed=False,
                agreeing_agents=(),
                dissenting_agents=(),
                group_counts={},
            )

        confidence = majority.size / tally.total
        passed = meets_threshold(confidence, self.sla.min_consensus_fraction) and (
            majority.size >= self.sla.min_agreeing_agents
        )
        dissenting = tuple(
            address for group in tally.groups.values() if group is not majority for address in group.members
        )

        return ConsensusDecision(
            consensus_result=majority.first_payload,
            confidence_score=confidence,
            agents_agreed=majority.size,
            passed=passed,
            agreeing_agents=tuple(majority.members),
            dissenting_agents=dissenting,
            group_counts=tally.counts(),
        )
