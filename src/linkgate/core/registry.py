# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Agent registry and reputation ledger.

One record per agent identity. Two write paths:

- Owner path: ``register_agent`` (rejects duplicates) and ``update_metadata``
  (owner only; bumps ``metadata_version``).
- Orchestrator path: ``record_outcome`` updates the bounded reputation score,
  task counters and SLA-violation counter. Reaching the violation threshold
  deactivates the agent, and nothing in this module turns it back on.

Discovery reads (``list_agents``, ``find_top_agents``, ``find_by_endpoint``)
enumerate agents in registration order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .exceptions import (
    AgentAlreadyRegisteredError,
    AgentNotRegisteredError,
    DuplicateOutcomeError,
    NotFoundError,
    PermissionDeniedError,
    ValidationException,
)
from .reputation import ReputationChange, ReputationConstants, apply_outcome
from .store import KeyValueStore, update_with_retry

logger = logging.getLogger(__name__)

AGENT_KEY_PREFIX = "registry:agent:"
INDEX_KEY_PREFIX = "registry:index:"
COUNT_KEY = "registry:count"


@dataclass
class AgentRecord:
    """Registry entry for one agent identity."""

    address: str
    owner: str
    metadata_uri: str
    metadata_version: int = 1
    is_active: bool = True
    reputation_score: int = ReputationConstants.INITIAL_SCORE
    total_tasks: int = 0
    successful_tasks: int = 0
    sla_violation_count: int = 0
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    recorded_tasks: list[str] = field(default_factory=list)  # task ids whose outcome is applied

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "metadata_uri": self.metadata_uri,
            "metadata_version": self.metadata_version,
            "is_active": self.is_active,
            "reputation_score": self.reputation_score,
            "total_tasks": self.total_tasks,
            "successful_tasks": self.successful_tasks,
            "sla_violation_count": self.sla_violation_count,
            "registered_at": self.registered_at.isoformat(),
            "recorded_tasks": list(self.recorded_tasks),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentRecord:
        return cls(
            address=data["address"],
            owner=data["owner"],
            metadata_uri=data["metadata_uri"],
            metadata_version=data["metadata_version"],
            is_active=data["is_active"],
            reputation_score=data["reputation_score"],
            total_tasks=data["total_tasks"],
            successful_tasks=data["successful_tasks"],
            sla_violation_count=data["sla_violation_count"],
            registered_at=datetime.fromisoformat(data["registered_at"]),
            recorded_tasks=list(data.get("recorded_tasks", [])),
        )


class AgentRegistry:
    """Registry contract over a ``KeyValueStore``."""

    def __init__(self, store: KeyValueStore, orchestrator: str):
        self.store = store
        self.orchestrator = orchestrator

    # ------------------------------------------------------------------
    # Owner path
    # ------------------------------------------------------------------

    def register_agent(self, agent: str, metadata_uri: str, *, owner: str) -> AgentRecord:
        """Register ``agent`` with ``owner`` as its controller.

        Raises:
            ValidationException: Empty agent, owner or URI.
            AgentAlreadyRegisteredError: The identity already has an entry.
        """
        if not agent:
            raise ValidationException("agent address must not be empty", "agent")
        if not owner:
            raise ValidationException("owner must not be empty", "owner")
        if not metadata_uri:
            raise ValidationException("metadata URI must not be empty", "metadata_uri")

        record = AgentRecord(address=agent, owner=owner, metadata_uri=metadata_uri)
        if not self.store.put_if_absent(self._agent_key(agent), record.to_dict()):
            raise AgentAlreadyRegisteredError(agent)

        index = self._append_index(agent)
        logger.info(f"Registered agent {agent} (#{index}) owned by {owner}")
        return record

    def update_metadata(self, agent: str, metadata_uri: str, is_active: bool, *, caller: str) -> AgentRecord:
        """Owner-only metadata update.

        Raises:
            AgentNotRegisteredError: Unknown agent.
            PermissionDeniedError: Caller is not the owner, or tries to
                reactivate an agent deactivated for SLA violations.
        """
        if not metadata_uri:
            raise ValidationException("metadata URI must not be empty", "metadata_uri")

        def mutate(value: dict[str, Any]) -> dict[str, Any]:
            if value["owner"] != caller:
                raise PermissionDeniedError(caller, "update agent metadata", f"not the owner of {agent}")
            if (
                is_active
                and not value["is_active"]
                and value["sla_violation_count"] >= ReputationConstants.SLA_DEACTIVATION_THRESHOLD
            ):
                raise PermissionDeniedError(caller, "reactivate agent", "deactivated for SLA violations")
            value["metadata_uri"] = metadata_uri
            value["is_active"] = is_active
            value["metadata_version"] += 1
            return value

        written = update_with_retry(self.store, self._agent_key(agent), mutate, lambda: AgentNotRegisteredError(agent))
        record = AgentRecord.from_dict(written)
        logger.info(f"Agent {agent} metadata updated to v{record.metadata_version} (active={record.is_active})")
        return record

    # ------------------------------------------------------------------
    # Orchestrator path (reputation ledger)
    # ------------------------------------------------------------------

    def record_outcome(
        self,
        agent: str,
        was_successful: bool,
        sla_violation: bool,
        *,
        caller: str,
        task_id: str | None = None,
    ) -> ReputationChange:
        """Apply one task outcome to ``agent``'s reputation.

        With ``task_id``, the (task, agent) pair can only ever be recorded
        once; a retried orchestration run gets ``DuplicateOutcomeError``
        instead of a second penalty. The task id is stored in the agent's own
        record by the same compare-and-set that applies the score, so a failed
        write leaves nothing behind and can simply be retried.

        Raises:
            PermissionDeniedError: Caller is not the orchestrator.
            AgentNotRegisteredError: Unknown agent.
            DuplicateOutcomeError: Outcome for this task already recorded.
        """
        if caller != self.orchestrator:
            raise PermissionDeniedError(caller, "record outcome")

        changes: list[ReputationChange] = []

        def mutate(value: dict[str, Any]) -> dict[str, Any]:
            recorded = value.setdefault("recorded_tasks", [])
            if task_id is not None:
                if task_id in recorded:
                    raise DuplicateOutcomeError(task_id, agent)
                recorded.append(task_id)
            change = apply_outcome(
                score=value["reputation_score"],
                sla_violations=value["sla_violation_count"],
                is_active=value["is_active"],
                was_successful=was_successful,
                sla_violation=sla_violation,
            )
            changes[:] = [change]
            value["total_tasks"] += 1
            if was_successful:
                value["successful_tasks"] += 1
            value["reputation_score"] = change.score_after
            value["sla_violation_count"] = change.sla_violations_after
            if change.sla_violations_after >= ReputationConstants.SLA_DEACTIVATION_THRESHOLD:
                value["is_active"] = False
            return value

        update_with_retry(self.store, self._agent_key(agent), mutate, lambda: AgentNotRegisteredError(agent))
        change = changes[0]

        logger.info(
            f"Agent {agent} outcome success={was_successful} sla_violation={sla_violation}: "
            f"reputation {change.score_before} -> {change.score_after}"
        )
        if change.deactivated:
            logger.warning(
                f"Agent {agent} deactivated after {change.sla_violations_after} SLA violations"
            )
        return change

    # ------------------------------------------------------------------
    # Reads / discovery
    # ------------------------------------------------------------------

    def get_agent(self, agent: str) -> AgentRecord:
        entry = self.store.get(self._agent_key(agent))
        if entry is None:
            raise AgentNotRegisteredError(agent)
        return AgentRecord.from_dict(entry.value)

    def is_registered(self, agent: str) -> bool:
        return self.store.get(self._agent_key(agent)) is not None

    def get_agent_count(self) -> int:
        entry = self.store.get(COUNT_KEY)
        return entry.value["count"] if entry else 0

    def agent_at(self, index: int) -> str:
        """Address registered at position ``index`` (0-based)."""
        entry = self.store.get(f"{INDEX_KEY_PREFIX}{index}")
        if entry is None:
            raise NotFoundError("Agent index", str(index))
        return entry.value["address"]

    def list_agents(self) -> list[AgentRecord]:
        """All agents in registration order."""
        return [self.get_agent(self.agent_at(i)) for i in range(self.get_agent_count())]

    def find_by_endpoint(self, url: str) -> AgentRecord | None:
        """First agent whose metadata URI is ``url``."""
        for record in self.list_agents():
            if record.metadata_uri == url:
                return record
        return None

    def find_top_agents(self, n: int) -> list[AgentRecord]:
        """Up to ``n`` active agents, best reputation first.

        Equal scores keep registration order.
        """
        active = [r for r in self.list_agents() if r.is_active]
        active.sort(key=lambda r: r.reputation_score, reverse=True)
        return active[:n]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append_index(self, agent: str) -> int:
        self.store.put_if_absent(COUNT_KEY, {"count": 0})
        slot: list[int] = []

        def bump(value: dict[str, Any]) -> dict[str, Any]:
            slot[:] = [value["count"]]
            value["count"] += 1
            return value

        # The count key was just ensured; it is never deleted
        update_with_retry(self.store, COUNT_KEY, bump, lambda: NotFoundError("Registry counter", COUNT_KEY))
        self.store.put_if_absent(f"{INDEX_KEY_PREFIX}{slot[0]}", {"address": agent})
        return slot[0]

    @staticmethod
    def _agent_key(agent: str) -> str:
        return f"{AGENT_KEY_PREFIX}{agent}"

