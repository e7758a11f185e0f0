# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Consensus verification engine for LinkGate.

The same task is answered by several untrusted agents; this package decides
whether their answers amount to a trustworthy result.

Submodules:
- constants: Sentinel payload, SLA defaults, quorum size
- enums: Result tags, failure reasons, verdicts, settlement actions
- models: AgentEndpoint, AgentResult, SLA, VerificationReport
- collector: Concurrent dispatch with per-call timeouts
- identity: Signature check, failures downgraded to sentinels
- sla: Latency filter
- consensus: Majority grouping and confidence scoring
- engine: VerificationEngine composing the stages
"""

from .collector import (
    AgentResultCollector,
    AgentTransport,
    AgentTransportError,
    AiohttpAgentTransport,
    now_ms,
    parse_agent_response,
)
from .consensus import (
    ConsensusDecision,
    ConsensusEngine,
    ConsensusTally,
    meets_threshold,
    normalize_payload,
    tally_results,
)
from .constants import (
    DEFAULT_AGENT_TIMEOUT_MS,
    DEFAULT_MAX_RESPONSE_TIME_MS,
    DEFAULT_MIN_AGREEING_AGENTS,
    DEFAULT_MIN_CONSENSUS_FRACTION,
    FAILURE_SENTINEL,
    QUORUM_SIZE,
)
from .engine import VerificationEngine
from .enums import FailureReason, ResultStatus, SettlementAction, VerdictReason
from .identity import IdentityVerifier
from .models import SLA, AgentEndpoint, AgentResult, VerificationReport
from .sla import SLAFilter, SLAPartition

__all__ = [
    # Constants
    "DEFAULT_AGENT_TIMEOUT_MS",
    "DEFAULT_MAX_RESPONSE_TIME_MS",
    "DEFAULT_MIN_AGREEING_AGENTS",
    "DEFAULT_MIN_CONSENSUS_FRACTION",
    "FAILURE_SENTINEL",
    "QUORUM_SIZE",
    # Enums
    "FailureReason",
    "ResultStatus",
    "SettlementAction",
    "VerdictReason",
    # Models
    "SLA",
    "AgentEndpoint",
    "AgentResult",
    "VerificationReport",
    # Stages
    "AgentResultCollector",
    "AgentTransport",
    "AgentTransportError",
    "AiohttpAgentTransport",
    "IdentityVerifier",
    "SLAFilter",
    "SLAPartition",
    "ConsensusDecision",
    "ConsensusEngine",
    "ConsensusTally",
    "VerificationEngine",
    # Functions
    "meets_threshold",
    "normalize_payload",
    "now_ms",
    "parse_agent_response",
    "tally_results",
]
