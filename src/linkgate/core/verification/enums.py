# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Enums for the consensus verification engine."""

from enum import StrEnum


class ResultStatus(StrEnum):
    """Tag of an AgentResult."""

    OK = "ok"  # Payload received and (after identity check) trusted
    FAILED = "failed"  # Sentinel: absent, malformed or mis-signed


class FailureReason(StrEnum):
    """Why a result was replaced by the sentinel (diagnostics only)."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    ADDRESS_MISMATCH = "address_mismatch"
    DUPLICATE_IDENTITY = "duplicate_identity"  # Same signer already answered this dispatch


class VerdictReason(StrEnum):
    """How a verification pass ended."""

    NO_RESPONSES = "no_responses"  # Nothing usable was received
    ALL_SLA_VIOLATED = "all_sla_violated"  # Valid answers, all too late
    NO_CONSENSUS = "no_consensus"  # Majority below threshold
    CONSENSUS = "consensus"  # Threshold reached


class SettlementAction(StrEnum):
    """Escrow action driven by a verification report."""

    RELEASE = "release"
    REFUND = "refund"
