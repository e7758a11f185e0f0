# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""SLA filter: late answers never vote, even when correctly signed."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import SLA, AgentResult

logger = logging.getLogger(__name__)


@dataclass
class SLAPartition:
    """Verified results split by latency, arrival order preserved."""

    on_time: list[AgentResult] = field(default_factory=list)
    late: list[AgentResult] = field(default_factory=list)
    response_times_ms: dict[str, int] = field(default_factory=dict)

    @property
    def violators(self) -> tuple[str, ...]:
        return tuple(r.agent_address for r in self.late)


class SLAFilter:
    """Partitions trusted results by ``max_response_time_ms``."""

    def __init__(self, sla: SLA):
        self.sla = sla

    def partition(self, results: Iterable[AgentResult], dispatch_started_at: int) -> SLAPartition:
        """Split non-sentinel results into on-time and late.

        Sentinel results are not part of either side; they are neither
        voters nor SLA violators.
        """
        partition = SLAPartition()
        for result in results:
            if not result.is_ok:
                continue
            elapsed = result.response_time_ms(dispatch_started_at)
            partition.response_times_ms[result.agent_address] = elapsed
            if elapsed > self.sla.max_response_time_ms:
                logger.warning(
                    f"SLA violation: Agent {result.agent_address} took {elapsed}ms "
                    f"(limit: {self.sla.max_response_time_ms}ms)"
                )
                partition.late.append(result)
            else:
                partition.on_time.append(result)
        return partition
