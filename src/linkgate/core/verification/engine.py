# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Verification engine: identity check → SLA filter → consensus → report."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .consensus import ConsensusEngine
from .enums import VerdictReason
from .identity import IdentityVerifier
from .models import SLA, AgentResult, VerificationReport
from .sla import SLAFilter

logger = logging.getLogger(__name__)


class VerificationEngine:
    """Turns the raw result set of one task into a ``VerificationReport``.

    Pure with respect to its inputs apart from the signature checks, which
    are delegated to the injected identity verifier.
    """

    def __init__(self, identity_verifier: IdentityVerifier | None = None):
        self.identity_verifier = identity_verifier or IdentityVerifier()

    def verify(
        self,
        task_id: str,
        results: Sequence[AgentResult],
        sla: SLA,
        dispatch_started_at: int,
    ) -> VerificationReport:
        """Verify the results of one dispatch.

        Args:
            task_id: Task being verified
            results: Collected results in arrival order (sentinels included)
            sla: Latency and agreement constraints
            dispatch_started_at: Collector clock (ms) when dispatch began

        Returns:
            The report. ``verdict`` tells an empty or all-late pass apart from
            a genuine minority result.
        """
        checked = self.identity_verifier.check_all(results)
        failed_agents = tuple(r.agent_address for r in checked if not r.is_ok)
        partition = SLAFilter(sla).partition(checked, dispatch_started_at)

        if not partition.on_time:
            verdict = VerdictReason.ALL_SLA_VIOLATED if partition.late else VerdictReason.NO_RESPONSES
            if verdict is VerdictReason.NO_RESPONSES:
                logger.warning(f"Task {task_id}: No usable results received ({len(results)} queried).")
            else:
                logger.error(f"Task {task_id}: All agents violated SLA.")
            return VerificationReport(
                task_id=task_id,
                consensus_result=None,
                confidence_score=0.0,
                agents_queried=len(results),
                agents_agreed=0,
                sla_violators=partition.violators,
                passed=False,
                verdict=verdict,
                failed_agents=failed_agents,
            )

        decision = ConsensusEngine(sla).decide(partition.on_time)
        report = VerificationReport(
            task_id=task_id,
            consensus_result=decision.consensus_result,
            confidence_score=decision.confidence_score,
            agents_queried=len(results),
            agents_agreed=decision.agents_agreed,
            sla_violators=partition.violators,
            passed=decision.passed,
            verdict=VerdictReason.CONSENSUS if decision.passed else VerdictReason.NO_CONSENSUS,
            agreeing_agents=decision.agreeing_agents,
            dissenting_agents=decision.dissenting_agents,
            failed_agents=failed_agents,
            group_counts=decision.group_counts,
        )

        logger.info(
            f"Task {task_id}: {'PASSED' if report.passed else 'FAILED'} "
            f"(confidence={report.confidence_score * 100:.1f}%, "
            f"{report.agents_agreed}/{len(partition.on_time)} agents agreed)"
        )
        return report
