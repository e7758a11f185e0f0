# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Settlement coordinator: one verification report, one escrow transition.

A passed report releases the locked amount to the seller; anything else
refunds the buyer. The escrow ledger guarantees exactly-once settlement, so a
second attempt for the same task surfaces as ``AlreadySettledError`` rather
than a second transfer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .escrow import EscrowLedger, EscrowTask
from .verification.enums import SettlementAction
from .verification.models import VerificationReport

logger = logging.getLogger(__name__)


def settlement_action_for(report: VerificationReport) -> SettlementAction:
    """Release on a passed report, refund otherwise."""
    return SettlementAction.RELEASE if report.passed else SettlementAction.REFUND


@dataclass(frozen=True)
class SettlementResult:
    action: SettlementAction
    task: EscrowTask


class SettlementCoordinator:
    """Drives the escrow ledger from verification reports."""

    def __init__(self, escrow: EscrowLedger, orchestrator_address: str):
        self.escrow = escrow
        self.orchestrator_address = orchestrator_address

    def settle(self, report: VerificationReport) -> SettlementResult:
        """Apply the action implied by ``report``.

        Raises:
            AlreadySettledError: The task was settled before.
            UnknownTaskError: No payment was locked for the task.
            PermissionDeniedError: Configured address is not the escrow's orchestrator.
        """
        action = settlement_action_for(report)
        if action is SettlementAction.RELEASE:
            task = self.escrow.release_payment(report.task_id, caller=self.orchestrator_address)
        else:
            task = self.escrow.refund_payment(report.task_id, caller=self.orchestrator_address)

        logger.info(f"Task {report.task_id}: settlement {action.value} ({report.verdict.value})")
        return SettlementResult(action=action, task=task)
