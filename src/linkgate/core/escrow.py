# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Escrow ledger: lock, release and refund per task.

State machine per task::

    LOCKED ──release──▶ RELEASED
       └────refund────▶ REFUNDED

Both terminal states are final. The transition is a compare-and-set on the
task's store entry, so concurrent or repeated settlement attempts for the same
task yield exactly one transfer; every other caller gets
``AlreadySettledError``. Release and refund are reserved to the orchestrator.

Token custody itself is opaque: each transition is appended to the event log
and handed to registered listeners, which perform the actual transfer.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from .exceptions import (
    AlreadySettledError,
    PermissionDeniedError,
    TaskAlreadyLockedError,
    UnknownTaskError,
    ValidationException,
)
from .store import KeyValueStore, update_with_retry

logger = logging.getLogger(__name__)

TASK_KEY_PREFIX = "escrow:task:"
TASK_ID_BYTES = 32

_BYTES32_HEX = re.compile(r"^0x[0-9a-fA-F]{64}$")


def task_id_to_bytes32(task_id: str) -> str:
    """Fixed-length persisted form of a task id.

    UTF-8 bytes truncated to 32 and right-padded with zeros, as ``0x`` hex.
    A value that already is 32 bytes of hex is only lower-cased.
    """
    if not task_id:
        raise ValidationException("task_id must not be empty", "task_id", task_id)
    if _BYTES32_HEX.match(task_id):
        return task_id.lower()
    raw = task_id.encode("utf-8")[:TASK_ID_BYTES]
    return "0x" + raw.ljust(TASK_ID_BYTES, b"\x00").hex()


class TaskStatus(StrEnum):
    LOCKED = "locked"
    RELEASED = "released"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.LOCKED


class EscrowEventKind(StrEnum):
    LOCKED = "payment_locked"
    RELEASED = "payment_released"
    REFUNDED = "payment_refunded"


@dataclass
class EscrowTask:
    """Escrow entry for one task."""

    task_id: str  # bytes32 hex
    buyer: str
    seller: str
    amount: int  # smallest unit
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: TaskStatus = TaskStatus.LOCKED
    settled_at: datetime | None = None

    @property
    def released(self) -> bool:
        return self.status is TaskStatus.RELEASED

    @property
    def refunded(self) -> bool:
        return self.status is TaskStatus.REFUNDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "buyer": self.buyer,
            "seller": self.seller,
            "amount": self.amount,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EscrowTask:
        return cls(
            task_id=data["task_id"],
            buyer=data["buyer"],
            seller=data["seller"],
            amount=int(data["amount"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=TaskStatus(data["status"]),
            settled_at=datetime.fromisoformat(data["settled_at"]) if data.get("settled_at") else None,
        )


@dataclass(frozen=True)
class EscrowEvent:
    """One ledger transition."""

    kind: EscrowEventKind
    task_id: str
    recipient: str  # who receives (or, when locking, who holds) the funds
    amount: int
    at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "task_id": self.task_id,
            "recipient": self.recipient,
            "amount": self.amount,
            "at": self.at.isoformat(),
        }


EscrowListener = Callable[[EscrowEvent], None]


class EscrowLedger:
    """Escrow contract over a ``KeyValueStore``."""

    def __init__(self, store: KeyValueStore, orchestrator: str):
        self.store = store
        self.orchestrator = orchestrator
        self._events: list[EscrowEvent] = []
        self._events_lock = threading.Lock()
        self._listeners: list[EscrowListener] = []

    def add_listener(self, listener: EscrowListener) -> None:
        """Register a token-custody hook called once per transition."""
        self._listeners.append(listener)

    def events(self) -> list[EscrowEvent]:
        with self._events_lock:
            return list(self._events)

    def lock_payment(self, task_id: str, seller: str, amount: int, *, buyer: str) -> EscrowTask:
        """Lock ``amount`` from ``buyer`` for ``seller`` under ``task_id``.

        Raises:
            ValidationException: Empty seller/buyer or non-positive amount.
            TaskAlreadyLockedError: The task id is already in use.
        """
        if not seller:
            raise ValidationException("seller must not be empty", "seller")
        if not buyer:
            raise ValidationException("buyer must not be empty", "buyer")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationException("amount must be a positive integer", "amount", amount)

        key_id = task_id_to_bytes32(task_id)
        task = EscrowTask(task_id=key_id, buyer=buyer, seller=seller, amount=amount)
        if not self.store.put_if_absent(self._key(key_id), task.to_dict()):
            raise TaskAlreadyLockedError(key_id)

        logger.info(f"Locked {amount} from {buyer} for {seller} under task {key_id}")
        self._emit(EscrowEvent(EscrowEventKind.LOCKED, key_id, seller, amount))
        return task

    def release_payment(self, task_id: str, *, caller: str) -> EscrowTask:
        """Transfer the locked amount to the seller.

        Raises:
            PermissionDeniedError: Caller is not the orchestrator.
            UnknownTaskError: Nothing was ever locked for this task.
            AlreadySettledError: The task is already released or refunded.
        """
        task = self._settle(task_id, TaskStatus.RELEASED, caller, "release payment")
        self._emit(EscrowEvent(EscrowEventKind.RELEASED, task.task_id, task.seller, task.amount))
        return task

    def refund_payment(self, task_id: str, *, caller: str) -> EscrowTask:
        """Return the locked amount to the buyer. Same errors as release."""
        task = self._settle(task_id, TaskStatus.REFUNDED, caller, "refund payment")
        self._emit(EscrowEvent(EscrowEventKind.REFUNDED, task.task_id, task.buyer, task.amount))
        return task

    def get_task(self, task_id: str) -> EscrowTask:
        key_id = task_id_to_bytes32(task_id)
        entry = self.store.get(self._key(key_id))
        if entry is None:
            raise UnknownTaskError(key_id)
        return EscrowTask.from_dict(entry.value)

    def _settle(self, task_id: str, target: TaskStatus, caller: str, action: str) -> EscrowTask:
        if caller != self.orchestrator:
            raise PermissionDeniedError(caller, action)

        key_id = task_id_to_bytes32(task_id)

        def transition(value: dict[str, Any]) -> dict[str, Any]:
            current = TaskStatus(value["status"])
            if current.is_terminal:
                raise AlreadySettledError(key_id, current.value)
            value["status"] = target.value
            value["settled_at"] = datetime.now(UTC).isoformat()
            return value

        written = update_with_retry(self.store, self._key(key_id), transition, lambda: UnknownTaskError(key_id))
        task = EscrowTask.from_dict(written)
        logger.info(f"Task {key_id} {target.value}: {task.amount} to {task.seller if task.released else task.buyer}")
        return task

    def _emit(self, event: EscrowEvent) -> None:
        with self._events_lock:
            self._events.append(event)
        for listener in self._listeners:
            listener(event)

    @staticmethod
    def _key(task_key: str) -> str:
        return f"{TASK_KEY_PREFIX}{task_key}"
