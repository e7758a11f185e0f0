"""End-to-end verification cycles through linkgate.core.orchestrator."""

from __future__ import annotations

import pytest

from linkgate.core.config import parse_cycle_config
from linkgate.core.exceptions import UnknownTaskError
from linkgate.core.orchestrator import CycleOutcome, MarketplaceOrchestrator, run_verification_cycle
from linkgate.core.verification import SettlementAction, VerdictReason

ORCHESTRATOR = "orchestrator"
URLS = ["http://agent-0:4000/predict", "http://agent-1:4000/predict", "http://agent-2:4000/predict"]


@pytest.fixture
def registered(registry, signers):
    """Three agents registered under their endpoint URLs."""
    for signer, url in zip(signers, URLS, strict=True):
        registry.register_agent(signer.address, url, owner="owner")
    return signers


@pytest.fixture
def locked(escrow):
    escrow.lock_payment("task-1", "seller", 1000, buyer="buyer")
    return escrow


def _orchestrator(escrow, registry, transport) -> MarketplaceOrchestrator:
    return MarketplaceOrchestrator(escrow, registry, transport=transport, agent_timeout_ms=1000)


def _config(**overrides):
    return parse_cycle_config({"taskId": "task-1", "agentEndpoints": URLS, **overrides})


# ============================================================================
# Cycle scenarios
# ============================================================================


class TestVerificationCycle:
    async def test_majority_agreement_releases(self, locked, registry, registered, make_agent, make_transport):
        """Two of three agree: release, reward the majority, penalise the dissenter."""
        transport = make_transport(
            {
                URLS[0]: make_agent(signer=registered[0]),
                URLS[1]: make_agent(signer=registered[1]),
                URLS[2]: make_agent(signer=registered[2], result="Argentina 1 - 1 France"),
            }
        )
        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert outcome.success
        assert outcome.report.consensus_result == "Brazil 3 - 0 Germany"
        assert outcome.report.confidence_score == pytest.approx(2 / 3)
        assert outcome.action is SettlementAction.RELEASE
        assert locked.get_task("task-1").released

        assert registry.get_agent(registered[0].address).reputation_score == 510
        assert registry.get_agent(registered[1].address).reputation_score == 510
        dissenter = registry.get_agent(registered[2].address)
        assert dissenter.reputation_score == 450
        assert dissenter.successful_tasks == 0
        assert outcome.message == "Task task-1 processed. Result: Success"
        assert outcome.errors == []

    async def test_late_agent_excluded_from_vote(self, locked, registry, registered, make_agent, make_transport):
        """A late answer is an SLA violation and consensus runs over the rest."""
        transport = make_transport(
            {
                URLS[0]: make_agent(signer=registered[0]),
                URLS[1]: make_agent(signer=registered[1]),
                URLS[2]: make_agent(signer=registered[2], delay_s=0.3),
            }
        )
        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config(maxResponseTimeMs=100))

        report = outcome.report
        assert report.passed
        assert report.sla_violators == (registered[2].address,)
        assert report.agents_agreed == 2
        assert report.confidence_score == 1.0
        assert report.agents_queried == 3

        late = registry.get_agent(registered[2].address)
        assert late.sla_violation_count == 1
        assert late.reputation_score == 430
        assert registry.get_agent(registered[0].address).sla_violation_count == 0

    async def test_no_agreement_refunds(self, locked, registry, registered, make_agent, make_transport):
        """Three distinct answers: refund the buyer, nobody is rewarded."""
        transport = make_transport(
            {
                URLS[0]: make_agent(signer=registered[0], result="Brazil 3 - 0 Germany"),
                URLS[1]: make_agent(signer=registered[1], result="Brazil 2 - 0 Germany"),
                URLS[2]: make_agent(signer=registered[2], result="Brazil 1 - 0 Germany"),
            }
        )
        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert not outcome.success
        assert outcome.report.consensus_result in {"Brazil 3 - 0 Germany", "Brazil 2 - 0 Germany", "Brazil 1 - 0 Germany"}
        assert outcome.report.verdict is VerdictReason.NO_CONSENSUS
        assert outcome.action is SettlementAction.REFUND
        assert locked.get_task("task-1").refunded
        for signer in registered:
            assert registry.get_agent(signer.address).reputation_score == 450
        assert outcome.message == "Task task-1 processed. Result: Failed"

    async def test_timeout_counts_as_failure(self, locked, registry, registered, make_agent, make_transport):
        """An agent past the collector timeout is a sentinel, attributed to its registered address."""
        transport = make_transport(
            {
                URLS[0]: make_agent(signer=registered[0]),
                URLS[1]: make_agent(signer=registered[1]),
                URLS[2]: make_agent(signer=registered[2], delay_s=5),
            }
        )
        orchestrator = MarketplaceOrchestrator(locked, registry, transport=transport, agent_timeout_ms=200)
        outcome = await orchestrator.run_cycle(_config())

        assert outcome.report.failed_agents == (registered[2].address,)
        assert outcome.report.confidence_score == 1.0
        assert outcome.success
        silent = registry.get_agent(registered[2].address)
        assert silent.reputation_score == 450
        assert silent.sla_violation_count == 0

    async def test_impersonation_rejected(self, locked, registry, registered, make_agent, make_transport):
        """An answer signed by another identity is downgraded to a failure."""
        transport = make_transport(
            {
                URLS[0]: make_agent(signer=registered[0]),
                URLS[1]: make_agent(signer=registered[0]),  # claims agent-0's identity
                URLS[2]: make_agent(signer=registered[2], result="Argentina 1 - 1 France"),
            }
        )
        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert not outcome.success
        assert registered[1].address in outcome.report.failed_agents
        assert outcome.action is SettlementAction.REFUND

    async def test_transport_call_per_agent(self, locked, registry, registered, make_agent, make_transport):
        transport = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, registered, strict=True)})
        await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert sorted(call[0] for call in transport.calls) == URLS
        assert all(call[1] == "task-1" and call[2] == 1.0 for call in transport.calls)


# ============================================================================
# Idempotency and state conflicts
# ============================================================================


class TestCycleConflicts:
    async def test_already_settled_skips_dispatch(self, locked, registry, make_transport):
        locked.release_payment("task-1", caller=ORCHESTRATOR)
        transport = make_transport({})

        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert outcome.already_settled
        assert outcome.report is None
        assert transport.calls == []
        assert outcome.message == "Task task-1 already settled. Nothing to do."

    async def test_second_run_is_noop(self, locked, registry, registered, make_agent, make_transport):
        transport = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, registered, strict=True)})
        orchestrator = _orchestrator(locked, registry, transport)

        await orchestrator.run_cycle(_config())
        second = await orchestrator.run_cycle(_config())

        assert second.already_settled
        assert len(transport.calls) == 3
        assert registry.get_agent(registered[0].address).total_tasks == 1

    async def test_settled_during_dispatch(self, locked, registry, registered, make_agent, make_transport):
        """A competing run that settles first wins; this run changes nothing."""
        inner = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, registered, strict=True)})

        class RacingTransport:
            async def fetch(self, endpoint, task_id, timeout_s):
                if not locked.get_task(task_id).status.is_terminal:
                    locked.refund_payment(task_id, caller=ORCHESTRATOR)
                return await inner.fetch(endpoint, task_id, timeout_s)

        outcome = await _orchestrator(locked, registry, RacingTransport()).run_cycle(_config())

        assert outcome.report.passed
        assert outcome.already_settled
        assert not outcome.settled
        assert outcome.errors[0]["error"] == "AlreadySettledError"
        assert locked.get_task("task-1").refunded
        assert outcome.reputation_updates == {}
        assert registry.get_agent(registered[0].address).total_tasks == 0

    async def test_unknown_task(self, escrow, registry, make_transport):
        with pytest.raises(UnknownTaskError):
            await _orchestrator(escrow, registry, make_transport({})).run_cycle(_config())

    async def test_unregistered_agents_skipped(self, locked, registry, signers, make_agent, make_transport):
        transport = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, signers, strict=True)})
        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert outcome.settled
        assert outcome.reputation_updates == {}
        assert outcome.errors == []

    async def test_duplicate_outcome_reported(self, locked, registry, registered, make_agent, make_transport):
        registry.record_outcome(registered[0].address, True, False, caller=ORCHESTRATOR, task_id="task-1")
        transport = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, registered, strict=True)})

        outcome = await _orchestrator(locked, registry, transport).run_cycle(_config())

        assert outcome.settled
        assert [e["error"] for e in outcome.errors] == ["DuplicateOutcomeError"]
        assert set(outcome.reputation_updates) == {registered[1].address, registered[2].address}
        assert registry.get_agent(registered[0].address).total_tasks == 1


# ============================================================================
# Endpoint resolution
# ============================================================================


class TestResolveEndpoints:
    def test_configured_endpoints_carry_registered_address(self, escrow, registry, registered, make_transport):
        endpoints = _orchestrator(escrow, registry, make_transport({})).resolve_endpoints(
            parse_cycle_config({"taskId": "t", "agentEndpoints": [URLS[1], "http://stranger"]})
        )
        assert endpoints[0].address == registered[1].address
        assert endpoints[1].address is None
        assert endpoints[1].identity == "http://stranger"

    async def test_discovery_from_registry(self, locked, registry, registered, make_agent, make_transport):
        registry.update_metadata(registered[1].address, URLS[1], False, caller="owner")
        transport = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, registered, strict=True)})

        outcome = await _orchestrator(locked, registry, transport).run_cycle(
            parse_cycle_config({"taskId": "task-1"})
        )

        assert sorted(call[0] for call in transport.calls) == [URLS[0], URLS[2]]
        assert outcome.report.agents_queried == 2
        assert outcome.success


# ============================================================================
# Synchronous entry point
# ============================================================================


class TestRunVerificationCycle:
    def test_returns_message(self, locked, registry, registered, make_agent, make_transport):
        transport = make_transport({url: make_agent(signer=s) for url, s in zip(URLS, registered, strict=True)})
        message = run_verification_cycle(
            "task-1",
            {"agentEndpoints": URLS},
            orchestrator=_orchestrator(locked, registry, transport),
        )
        assert message == "Task task-1 processed. Result: Success"

    def test_task_id_argument_wins(self, locked, registry, make_transport):
        locked.refund_payment("task-1", caller=ORCHESTRATOR)
        message = run_verification_cycle(
            "task-1",
            parse_cycle_config({"taskId": "something-else"}),
            orchestrator=_orchestrator(locked, registry, make_transport({})),
        )
        assert message == "Task task-1 already settled. Nothing to do."


class TestCycleOutcome:
    def test_to_dict_without_report(self):
        data = CycleOutcome(task_id="t", already_settled=True).to_dict()
        assert data["report"] is None
        assert data["success"] is False
        assert data["action"] is None
        assert data["message"] == "Task t already settled. Nothing to do."
