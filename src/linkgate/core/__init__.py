# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""LinkGate Core - verification, settlement and reputation primitives."""

from .config import CoreSettings, CycleConfig, clear_config_cache, get_config, load_cycle_config
from .escrow import EscrowLedger, EscrowTask, TaskStatus, task_id_to_bytes32
from .exceptions import (
    AgentAlreadyRegisteredError,
    AgentNotRegisteredError,
    AlreadySettledError,
    ConfigException,
    ConflictError,
    DuplicateOutcomeError,
    LinkGateException,
    NotFoundError,
    PermissionDeniedError,
    StoreException,
    TaskAlreadyLockedError,
    UnknownTaskError,
    ValidationException,
)
from .identity import Ed25519Signer, verify_signature
from .logging import configure_logging, correlation_context, get_logger
from .orchestrator import CycleOutcome, MarketplaceOrchestrator, run_verification_cycle
from .registry import AgentRecord, AgentRegistry
from .reputation import ReputationChange, ReputationConstants, apply_outcome
from .settlement import SettlementCoordinator, settlement_action_for
from .store import InMemoryStore, KeyValueStore, PostgresStore, create_store

__all__ = [
    # Config
    "CoreSettings",
    "CycleConfig",
    "clear_config_cache",
    "get_config",
    "load_cycle_config",
    # Exceptions
    "AgentAlreadyRegisteredError",
    "AgentNotRegisteredError",
    "AlreadySettledError",
    "ConfigException",
    "ConflictError",
    "DuplicateOutcomeError",
    "LinkGateException",
    "NotFoundError",
    "PermissionDeniedError",
    "StoreException",
    "TaskAlreadyLockedError",
    "UnknownTaskError",
    "ValidationException",
    # Identity
    "Ed25519Signer",
    "verify_signature",
    # Logging
    "configure_logging",
    "correlation_context",
    "get_logger",
    # Store
    "InMemoryStore",
    "KeyValueStore",
    "PostgresStore",
    "create_store",
    # Escrow / settlement
    "EscrowLedger",
    "EscrowTask",
    "TaskStatus",
    "task_id_to_bytes32",
    "SettlementCoordinator",
    "settlement_action_for",
    # Registry / reputation
    "AgentRecord",
    "AgentRegistry",
    "ReputationChange",
    "ReputationConstants",
    "apply_outcome",
    # Orchestration
    "CycleOutcome",
    "MarketplaceOrchestrator",
    "run_verification_cycle",
]
