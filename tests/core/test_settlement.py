"""Tests for linkgate.core.settlement."""

from __future__ import annotations

import pytest

from linkgate.core.escrow import TaskStatus
from linkgate.core.exceptions import AlreadySettledError, PermissionDeniedError, UnknownTaskError
from linkgate.core.settlement import SettlementCoordinator, settlement_action_for
from linkgate.core.verification import SettlementAction, VerdictReason, VerificationReport

ORCHESTRATOR = "orchestrator"


def _report(task_id: str = "task-1", passed: bool = True) -> VerificationReport:
    return VerificationReport(
        task_id=task_id,
        consensus_result="Brazil 3 - 0 Germany" if passed else None,
        confidence_score=1.0 if passed else 1 / 3,
        agents_queried=3,
        agents_agreed=3 if passed else 1,
        sla_violators=(),
        passed=passed,
        verdict=VerdictReason.CONSENSUS if passed else VerdictReason.NO_CONSENSUS,
    )


@pytest.fixture
def coordinator(escrow) -> SettlementCoordinator:
    escrow.lock_payment("task-1", "seller", 1000, buyer="buyer")
    return SettlementCoordinator(escrow, ORCHESTRATOR)


class TestSettlementAction:
    def test_passed_releases(self):
        assert settlement_action_for(_report(passed=True)) is SettlementAction.RELEASE

    def test_failed_refunds(self):
        assert settlement_action_for(_report(passed=False)) is SettlementAction.REFUND


class TestSettlementCoordinator:
    def test_release_on_pass(self, coordinator, escrow):
        result = coordinator.settle(_report(passed=True))
        assert result.action is SettlementAction.RELEASE
        assert result.task.status is TaskStatus.RELEASED
        assert escrow.get_task("task-1").released

    def test_refund_on_fail(self, coordinator, escrow):
        result = coordinator.settle(_report(passed=False))
        assert result.action is SettlementAction.REFUND
        assert escrow.get_task("task-1").refunded

    def test_second_settlement_rejected(self, coordinator, escrow):
        coordinator.settle(_report(passed=True))
        with pytest.raises(AlreadySettledError):
            coordinator.settle(_report(passed=False))
        assert escrow.get_task("task-1").released
        assert len(escrow.events()) == 2

    def test_unknown_task(self, coordinator):
        with pytest.raises(UnknownTaskError):
            coordinator.settle(_report(task_id="other-task"))

    def test_wrong_orchestrator_address(self, escrow):
        escrow.lock_payment("task-1", "seller", 1000, buyer="buyer")
        with pytest.raises(PermissionDeniedError):
            SettlementCoordinator(escrow, "impostor").settle(_report())
