# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Custom exception hierarchy for LinkGate.

Transport and identity failures of individual agents are never raised; they
are folded into sentinel results by the collector. Everything here is a
rejected operation that the caller must see.
"""

from __future__ import annotations

from typing import Any


class LinkGateException(Exception):  # noqa: N818
    """Base exception for all LinkGate errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class StoreException(LinkGateException):
    """Exception for key-value store errors.

    Raised when:
    - The backing database is unreachable
    - A compare-and-set loop cannot make progress
    - A stored value cannot be decoded
    """

    pass


class ValidationException(LinkGateException):
    """Exception for validation errors.

    Raised when:
    - Input validation fails (empty task id, non-positive amount)
    - Field values are out of range (consensus fraction, timeouts)
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConfigException(LinkGateException):
    """Exception for configuration errors.

    Raised when:
    - The cycle config file is missing or not valid JSON
    - Required settings are missing or invalid
    """

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


class NotFoundError(LinkGateException):
    """Exception for resource not found errors."""

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class UnknownTaskError(NotFoundError):
    """No escrow entry was ever locked for this task."""

    def __init__(self, task_id: str):
        super().__init__("Task", task_id)
        self.task_id = task_id


class AgentNotRegisteredError(NotFoundError):
    """The agent has no registry entry."""

    def __init__(self, agent_address: str):
        super().__init__("Agent", agent_address)
        self.agent_address = agent_address


class ConflictError(LinkGateException):
    """Exception for state conflicts.

    Raised when:
    - Attempting to create a duplicate resource
    - A terminal state would be transitioned again
    """

    def __init__(self, message: str, existing_id: str | None = None):
        details = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id


class AlreadySettledError(ConflictError):
    """Release or refund on a task that is already released or refunded."""

    def __init__(self, task_id: str, status: str):
        super().__init__(f"Task {task_id} already settled: {status}", existing_id=task_id)
        self.details["status"] = status
        self.task_id = task_id
        self.status = status


class TaskAlreadyLockedError(ConflictError):
    """Funds were already locked under this task id."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} already locked", existing_id=task_id)
        self.task_id = task_id


class AgentAlreadyRegisteredError(ConflictError):
    """Re-registration of an existing agent identity."""

    def __init__(self, agent_address: str):
        super().__init__(f"Agent already registered: {agent_address}", existing_id=agent_address)
        self.agent_address = agent_address


class DuplicateOutcomeError(ConflictError):
    """An outcome for this (task, agent) pair was already recorded."""

    def __init__(self, task_id: str, agent_address: str):
        super().__init__(
            f"Outcome for agent {agent_address} on task {task_id} already recorded",
            existing_id=f"{task_id}:{agent_address}",
        )
        self.task_id = task_id
        self.agent_address = agent_address


class PermissionDeniedError(LinkGateException):
    """Caller is not allowed to perform a gated operation.

    Fatal to the call and never retried automatically.
    """

    def __init__(self, caller: str, action: str, reason: str | None = None):
        message = f"{caller} is not permitted to {action}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"caller": caller, "action": action})
        self.caller = caller
        self.action = action
