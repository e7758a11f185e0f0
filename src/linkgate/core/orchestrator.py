# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Marketplace orchestrator: one task, one verification cycle.

A cycle is:

1. Skip if the task's escrow is already settled (a re-run is a no-op).
2. Resolve endpoints, from the cycle config or from registry discovery.
3. Dispatch to every agent and collect results.
4. Verify (identity → SLA → consensus).
5. Settle: release on pass, refund on fail, exactly once.
6. Record each queried agent's outcome in the reputation ledger.

State conflicts raised by settlement or the ledger (already settled,
duplicate outcome, unregistered agent) are logged and reported in the
``CycleOutcome``; they never pass silently and never cause a second effect.
Permission errors propagate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .config import CycleConfig, get_config, parse_cycle_config
from .escrow import EscrowLedger
from .exceptions import AlreadySettledError, ConflictError, NotFoundError
from .identity import SignatureVerifier
from .logging import correlation_context, generate_correlation_id
from .registry import AgentRegistry
from .reputation import ReputationChange
from .settlement import SettlementCoordinator
from .store import KeyValueStore, create_store
from .verification import (
    QUORUM_SIZE,
    AgentEndpoint,
    AgentResultCollector,
    AgentTransport,
    AiohttpAgentTransport,
    IdentityVerifier,
    SettlementAction,
    VerificationEngine,
    VerificationReport,
    now_ms,
)

logger = logging.getLogger(__name__)


@dataclass
class CycleOutcome:
    """Everything one cycle did, for logging and the CLI."""

    task_id: str
    report: VerificationReport | None = None
    action: SettlementAction | None = None
    settled: bool = False
    already_settled: bool = False
    reputation_updates: dict[str, ReputationChange] = field(default_factory=dict)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.report is not None and self.report.passed

    @property
    def message(self) -> str:
        if self.report is None and self.already_settled:
            return f"Task {self.task_id} already settled. Nothing to do."
        return f"Task {self.task_id} processed. Result: {'Success' if self.success else 'Failed'}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "message": self.message,
            "success": self.success,
            "report": self.report.to_dict() if self.report else None,
            "action": self.action.value if self.action else None,
            "settled": self.settled,
            "already_settled": self.already_settled,
            "reputation_updates": {agent: change.to_dict() for agent, change in self.reputation_updates.items()},
            "errors": list(self.errors),
        }


class MarketplaceOrchestrator:
    """Runs verification cycles against an escrow ledger and agent registry."""

    def __init__(
        self,
        escrow: EscrowLedger,
        registry: AgentRegistry,
        transport: AgentTransport | None = None,
        verifier: SignatureVerifier | None = None,
        clock: Callable[[], int] = now_ms,
        orchestrator_address: str | None = None,
        agent_timeout_ms: int | None = None,
    ):
        self.escrow = escrow
        self.registry = registry
        self.transport = transport or AiohttpAgentTransport()
        self.engine = VerificationEngine(IdentityVerifier(verifier))
        self.clock = clock
        self.orchestrator_address = orchestrator_address or escrow.orchestrator
        self.agent_timeout_ms = agent_timeout_ms
        self.settlement = SettlementCoordinator(escrow, self.orchestrator_address)

    def resolve_endpoints(self, config: CycleConfig) -> list[AgentEndpoint]:
        """Endpoints to query, with the registered address where known.

        An empty endpoint list discovers the best-rated active agents.
        """
        if not config.agent_endpoints:
            top = self.registry.find_top_agents(QUORUM_SIZE)
            logger.info(f"Discovered {len(top)} agent(s) from registry")
            return [AgentEndpoint(url=r.metadata_uri, address=r.address) for r in top]

        endpoints = []
        for url in config.agent_endpoints:
            record = self.registry.find_by_endpoint(url)
            endpoints.append(AgentEndpoint(url=url, address=record.address if record else None))
        return endpoints

    async def run_cycle(self, config: CycleConfig) -> CycleOutcome:
        """Run one verification cycle for ``config.task_id``.

        Raises:
            UnknownTaskError: No payment was ever locked for the task.
            PermissionDeniedError: The orchestrator address is not authorised.
        """
        with correlation_context(generate_correlation_id(config.task_id)):
            return await self._run_cycle(config)

    async def _run_cycle(self, config: CycleConfig) -> CycleOutcome:
        task_id = config.task_id
        outcome = CycleOutcome(task_id=task_id)

        task = self.escrow.get_task(task_id)
        if task.status.is_terminal:
            logger.warning(f"Task {task_id} already {task.status.value}; skipping dispatch")
            outcome.already_settled = True
            return outcome

        endpoints = self.resolve_endpoints(config)
        timeout_ms = config.agent_timeout_ms or self.agent_timeout_ms or get_config().agent_timeout_ms
        collector = AgentResultCollector(self.transport, timeout_ms=timeout_ms, clock=self.clock)

        logger.info(f"Dispatching task {task_id} to {len(endpoints)} agent(s)")
        dispatch_started_at = self.clock()
        results = await collector.collect(task_id, endpoints)

        report = self.engine.verify(task_id, results, config.sla(), dispatch_started_at)
        outcome.report = report

        try:
            settlement = self.settlement.settle(report)
        except AlreadySettledError as e:
            logger.warning(f"Settlement of task {task_id} rejected: {e.message}", extra={"extra_data": e.to_dict()})
            outcome.already_settled = True
            outcome.errors.append(e.to_dict())
            return outcome
        except NotFoundError as e:
            logger.warning(f"Settlement of task {task_id} rejected: {e.message}", extra={"extra_data": e.to_dict()})
            outcome.errors.append(e.to_dict())
            return outcome

        outcome.action = settlement.action
        outcome.settled = True

        self._record_reputation(report, outcome)
        logger.info(outcome.message)
        return outcome

    def _record_reputation(self, report: VerificationReport, outcome: CycleOutcome) -> None:
        agreeing = set(report.agreeing_agents)
        violators = set(report.sla_violators)
        queried = dict.fromkeys(
            (*report.agreeing_agents, *report.dissenting_agents, *report.sla_violators, *report.failed_agents)
        )

        for agent in queried:
            if not self.registry.is_registered(agent):
                logger.warning(f"Agent {agent} is not registered; no reputation update for task {report.task_id}")
                continue
            try:
                change = self.registry.record_outcome(
                    agent,
                    was_successful=report.passed and agent in agreeing,
                    sla_violation=agent in violators,
                    caller=self.orchestrator_address,
                    task_id=report.task_id,
                )
            except (ConflictError, NotFoundError) as e:
                logger.warning(f"Reputation update for {agent} rejected: {e.message}", extra={"extra_data": e.to_dict()})
                outcome.errors.append(e.to_dict())
                continue
            outcome.reputation_updates[agent] = change


def build_orchestrator(
    store: KeyValueStore | None = None,
    transport: AgentTransport | None = None,
) -> MarketplaceOrchestrator:
    """Orchestrator wired from ``CoreSettings``."""
    settings = get_config()
    store = store if store is not None else create_store()
    return MarketplaceOrchestrator(
        escrow=EscrowLedger(store, settings.orchestrator_address),
        registry=AgentRegistry(store, settings.orchestrator_address),
        transport=transport,
        orchestrator_address=settings.orchestrator_address,
        agent_timeout_ms=settings.agent_timeout_ms,
    )


def run_verification_cycle(
    task_id: str,
    config: CycleConfig | dict[str, Any],
    orchestrator: MarketplaceOrchestrator | None = None,
) -> str:
    """Synchronous entry point for the scheduling trigger.

    ``task_id`` takes precedence over the task id in ``config``.

    Returns:
        The outcome message, e.g. ``"Task t-1 processed. Result: Success"``.
    """
    if isinstance(config, dict):
        config = parse_cycle_config({**config, "taskId": task_id})
    else:
        config = config.model_copy(update={"task_id": task_id})

    orchestrator = orchestrator or build_orchestrator()
    outcome = asyncio.run(orchestrator.run_cycle(config))
    return outcome.message
