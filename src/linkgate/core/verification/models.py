# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Data models for the consensus verification engine.

``AgentResult`` is a tagged union: either OK with a payload and signature, or
FAILED with the canonical sentinel. Downstream stages branch on the tag only,
never on ad-hoc empty strings or None.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from ..exceptions import ValidationException
from .constants import (
    DEFAULT_MAX_RESPONSE_TIME_MS,
    DEFAULT_MIN_AGREEING_AGENTS,
    DEFAULT_MIN_CONSENSUS_FRACTION,
    FAILURE_SENTINEL,
)
from .enums import FailureReason, ResultStatus, VerdictReason


@dataclass(frozen=True)
class AgentEndpoint:
    """Where to dispatch, and who we expect to answer (if known)."""

    url: str
    address: str | None = None

    @property
    def identity(self) -> str:
        """Address used to attribute a non-response."""
        return self.address or self.url


@dataclass(frozen=True)
class AgentResult:
    """One agent's answer for one task within a single verification pass."""

    agent_address: str
    status: ResultStatus
    payload: str
    signature: str
    timestamp: int  # ms since epoch, collector clock
    endpoint: str | None = None
    reported_timestamp: int | None = None  # agent-claimed, not trusted
    expected_address: str | None = None  # address the endpoint is registered to
    failure_reason: FailureReason | None = None

    @classmethod
    def ok(
        cls,
        agent_address: str,
        payload: str,
        signature: str,
        timestamp: int,
        endpoint: str | None = None,
        reported_timestamp: int | None = None,
        expected_address: str | None = None,
    ) -> AgentResult:
        return cls(
            agent_address=agent_address,
            status=ResultStatus.OK,
            payload=payload,
            signature=signature,
            timestamp=timestamp,
            endpoint=endpoint,
            reported_timestamp=reported_timestamp,
            expected_address=expected_address,
        )

    @classmethod
    def failed(
        cls,
        agent_address: str,
        timestamp: int,
        reason: FailureReason,
        endpoint: str | None = None,
    ) -> AgentResult:
        return cls(
            agent_address=agent_address,
            status=ResultStatus.FAILED,
            payload=FAILURE_SENTINEL,
            signature="",
            timestamp=timestamp,
            endpoint=endpoint,
            failure_reason=reason,
        )

    @property
    def is_ok(self) -> bool:
        return self.status is ResultStatus.OK

    def downgrade(self, reason: FailureReason, attribute_to: str | None = None) -> AgentResult:
        """Replace this result by the sentinel.

        Attribution stays with the claimed address unless ``attribute_to``
        names the identity that should answer for the failure instead.
        """
        return replace(
            self,
            agent_address=attribute_to or self.agent_address,
            status=ResultStatus.FAILED,
            payload=FAILURE_SENTINEL,
            signature="",
            failure_reason=reason,
        )

    def response_time_ms(self, dispatch_started_at: int) -> int:
        return self.timestamp - dispatch_started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_address": self.agent_address,
            "status": self.status.value,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "endpoint": self.endpoint,
            "reported_timestamp": self.reported_timestamp,
            "expected_address": self.expected_address,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
        }


@dataclass(frozen=True)
class SLA:
    """Seller-declared service level for one task.

    ``min_agreeing_agents`` keeps a lone answer from ever settling a task on
    its own, whatever the fraction threshold is.
    """

    max_response_time_ms: int = DEFAULT_MAX_RESPONSE_TIME_MS
    min_consensus_fraction: float = DEFAULT_MIN_CONSENSUS_FRACTION
    min_agreeing_agents: int = DEFAULT_MIN_AGREEING_AGENTS

    def __post_init__(self) -> None:
        if self.max_response_time_ms <= 0:
            raise ValidationException(
                "max_response_time_ms must be positive", "max_response_time_ms", self.max_response_time_ms
            )
        if not 0.0 < self.min_consensus_fraction <= 1.0:
            raise ValidationException(
                "min_consensus_fraction must be in (0, 1]", "min_consensus_fraction", self.min_consensus_fraction
            )
        if self.min_agreeing_agents < 1:
            raise ValidationException(
                "min_agreeing_agents must be at least 1", "min_agreeing_agents", self.min_agreeing_agents
            )


@dataclass(frozen=True)
class VerificationReport:
    """Outcome of one verification pass. Immutable once produced."""

    task_id: str
    consensus_result: str | None
    confidence_score: float
    agents_queried: int
    agents_agreed: int
    sla_violators: tuple[str, ...]
    passed: bool
    verdict: VerdictReason
    agreeing_agents: tuple[str, ...] = ()
    dissenting_agents: tuple[str, ...] = ()
    failed_agents: tuple[str, ...] = ()
    group_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "consensus_result": self.consensus_result,
            "confidence_score": self.confidence_score,
            "agents_queried": self.agents_queried,
            "agents_agreed": self.agents_agreed,
            "sla_violators": list(self.sla_violators),
            "passed": self.passed,
            "verdict": self.verdict.value,
            "agreeing_agents": list(self.agreeing_agents),
            "dissenting_agents": list(self.dissenting_agents),
            "failed_agents": list(self.failed_agents),
            "group_counts": dict(self.group_counts),
        }
