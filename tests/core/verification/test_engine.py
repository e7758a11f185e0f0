"""Tests for the composed verification engine."""

from __future__ import annotations

import pytest

from linkgate.core.identity import sign_result
from linkgate.core.verification import (
    SLA,
    AgentResult,
    FailureReason,
    VerdictReason,
    VerificationEngine,
)

START = 1_000_000
TASK = "match-2026-02-23"


def _answer(signer, payload: str, elapsed_ms: int = 50) -> AgentResult:
    return AgentResult.ok(signer.address, payload, sign_result(payload, signer), timestamp=START + elapsed_ms)


@pytest.fixture
def engine() -> VerificationEngine:
    return VerificationEngine()


class TestVerificationScenarios:
    def test_two_of_three_agree(self, engine, signers):
        results = [
            _answer(signers[0], "Brazil 3 - 0 Germany"),
            _answer(signers[1], "Brazil 3 - 0 Germany"),
            _answer(signers[2], "Germany 3 - 0 Brazil"),
        ]
        report = engine.verify(TASK, results, SLA(), START)

        assert report.passed
        assert report.verdict is VerdictReason.CONSENSUS
        assert report.consensus_result == "Brazil 3 - 0 Germany"
        assert report.confidence_score == pytest.approx(0.667, abs=0.001)
        assert report.agents_queried == 3
        assert report.agents_agreed == 2
        assert report.dissenting_agents == (signers[2].address,)
        assert report.sla_violators == ()

    def test_late_agent_excluded(self, engine, signers):
        results = [
            _answer(signers[0], "Brazil 3 - 0 Germany"),
            _answer(signers[1], "Brazil 3 - 0 Germany"),
            _answer(signers[2], "Brazil 3 - 0 Germany", elapsed_ms=7000),
        ]
        report = engine.verify(TASK, results, SLA(), START)

        assert report.passed
        assert report.sla_violators == (signers[2].address,)
        assert report.agents_agreed == 2
        assert report.confidence_score == 1.0
        assert signers[2].address not in report.agreeing_agents

    def test_all_distinct(self, engine, signers):
        results = [_answer(s, f"Brazil {i} - 0 Germany") for i, s in enumerate(signers)]
        report = engine.verify(TASK, results, SLA(), START)

        assert not report.passed
        assert report.verdict is VerdictReason.NO_CONSENSUS
        assert report.consensus_result == "Brazil 0 - 0 Germany"
        assert report.confidence_score == pytest.approx(1 / 3)


class TestVerificationEdgeCases:
    def test_no_results(self, engine):
        report = engine.verify(TASK, [], SLA(), START)
        assert report.verdict is VerdictReason.NO_RESPONSES
        assert report.agents_queried == 0
        assert not report.passed

    def test_only_sentinels(self, engine):
        results = [AgentResult.failed(f"http://{i}", START + 10, FailureReason.TIMEOUT) for i in range(3)]
        report = engine.verify(TASK, results, SLA(), START)

        assert report.verdict is VerdictReason.NO_RESPONSES
        assert report.failed_agents == ("http://0", "http://1", "http://2")
        assert report.sla_violators == ()

    def test_all_late(self, engine, signers):
        results = [_answer(s, "Brazil 3 - 0 Germany", elapsed_ms=9000) for s in signers]
        report = engine.verify(TASK, results, SLA(), START)

        assert report.verdict is VerdictReason.ALL_SLA_VIOLATED
        assert not report.passed
        assert report.confidence_score == 0.0
        assert len(report.sla_violators) == 3

    def test_bad_signature_excluded_from_vote(self, engine, signers):
        """A mis-signed answer is a failed agent and consensus runs over the rest."""
        forged = AgentResult.ok(signers[2].address, "Brazil 3 - 0 Germany", "AAAA", timestamp=START + 10)
        results = [
            _answer(signers[0], "Brazil 3 - 0 Germany"),
            forged,
            _answer(signers[1], "Germany 3 - 0 Brazil"),
        ]
        report = engine.verify(TASK, results, SLA(), START)

        assert report.failed_agents == (signers[2].address,)
        assert report.agents_queried == 3
        assert report.confidence_score == 0.5
        assert not report.passed

    def test_report_to_dict(self, engine, signers):
        results = [_answer(s, "Brazil 3 - 0 Germany") for s in signers]
        data = engine.verify(TASK, results, SLA(), START).to_dict()

        assert data["task_id"] == TASK
        assert data["verdict"] == "consensus"
        assert data["passed"] is True
        assert data["group_counts"] == {"brazil 3 - 0 germany": 3}
        assert isinstance(data["sla_violators"], list)

    def test_replayed_signature_cannot_reach_quorum(self, engine, signers):
        original = AgentResult.ok(
            signers[0].address, "X", sign_result("X", signers[0]), timestamp=START + 10, endpoint="http://a"
        )
        other = AgentResult.ok(
            signers[1].address, "Y", sign_result("Y", signers[1]), timestamp=START + 20, endpoint="http://b"
        )
        replay = AgentResult.ok(signers[0].address, "X", original.signature, timestamp=START + 30, endpoint="http://c")

        report = engine.verify(TASK, [original, other, replay], SLA(), START)

        assert not report.passed
        assert report.agreeing_agents == (signers[0].address,)
        assert report.agents_agreed == 1
        assert report.failed_agents == ("http://c",)
        assert report.confidence_score == 0.5
