"""Global test fixtures for the LinkGate test suite."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any

import pytest

from linkgate.core.config import clear_config_cache
from linkgate.core.escrow import EscrowLedger
from linkgate.core.identity import Ed25519Signer
from linkgate.core.registry import AgentRegistry
from linkgate.core.store import InMemoryStore
from linkgate.core.verification import AgentEndpoint, now_ms

ORCHESTRATOR = "orchestrator"

# ============================================================================
# PostgreSQL Availability Detection
# ============================================================================


def _check_postgres_available() -> tuple[bool, str | None]:
    """Check if PostgreSQL is available for integration tests.

    Returns:
        Tuple of (is_available, error_message)
    """
    import psycopg2

    host = os.environ.get("LINKGATE_DB_HOST", "localhost")
    port = int(os.environ.get("LINKGATE_DB_PORT", "5432"))
    dbname = os.environ.get("LINKGATE_DB_NAME", "linkgate")
    user = os.environ.get("LINKGATE_DB_USER", "linkgate")
    password = os.environ.get("LINKGATE_DB_PASSWORD", "")

    try:
        conn = psycopg2.connect(
            host=host,
            port=port,
            database=dbname,
            user=user,
            password=password,
            connect_timeout=3,
        )
        conn.close()
        return True, None
    except psycopg2.OperationalError as e:
        return False, f"PostgreSQL connection failed: {e}"


# Check PostgreSQL availability once at module load
POSTGRES_AVAILABLE, POSTGRES_ERROR = _check_postgres_available()


def pytest_collection_modifyitems(config, items):
    """Add skip markers to tests that require PostgreSQL when DB is unavailable."""
    if POSTGRES_AVAILABLE:
        return

    skip_postgres = pytest.mark.skip(reason=f"PostgreSQL not available: {POSTGRES_ERROR}")

    for item in items:
        if "integration" in item.keywords or "requires_postgres" in item.keywords:
            item.add_marker(skip_postgres)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all LINKGATE_ environment variables and reset cached settings."""
    for key in list(os.environ.keys()):
        if key.startswith("LINKGATE_"):
            monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the picture
    monkeypatch.chdir(os.path.dirname(__file__))
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Ledger Fixtures
# ============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def escrow(store) -> EscrowLedger:
    return EscrowLedger(store, ORCHESTRATOR)


@pytest.fixture
def registry(store) -> AgentRegistry:
    return AgentRegistry(store, ORCHESTRATOR)


@pytest.fixture
def signer() -> Ed25519Signer:
    return Ed25519Signer.generate()


@pytest.fixture
def signers() -> list[Ed25519Signer]:
    """Three independent agent identities."""
    return [Ed25519Signer.generate() for _ in range(3)]


# ============================================================================
# Agent Transport Fakes
# ============================================================================


@dataclass
class FakeAgent:
    """Scripted behaviour of one agent endpoint."""

    signer: Ed25519Signer | None = None
    result: str = "Brazil 3 - 0 Germany"
    delay_s: float = 0.0
    error: BaseException | None = None
    body: dict[str, Any] | None = None  # returned verbatim when set
    address: str | None = None  # claimed address override

    def respond(self) -> dict[str, Any]:
        if self.body is not None:
            return self.body
        signer = self.signer or Ed25519Signer.generate()
        return {
            "agentAddress": self.address or signer.address,
            "result": self.result,
            "signature": signer.sign(self.result.encode("utf-8")),
            "timestamp": now_ms(),
        }


@dataclass
class FakeTransport:
    """In-process ``AgentTransport`` keyed by endpoint URL."""

    agents: dict[str, FakeAgent]
    calls: list[tuple[str, str, float]] = field(default_factory=list)

    async def fetch(self, endpoint: AgentEndpoint, task_id: str, timeout_s: float) -> dict[str, Any]:
        self.calls.append((endpoint.url, task_id, timeout_s))
        agent = self.agents[endpoint.url]
        if agent.delay_s:
            await asyncio.sleep(agent.delay_s)
        if agent.error is not None:
            raise agent.error
        return agent.respond()


@pytest.fixture
def make_agent():
    """Factory for ``FakeAgent`` instances."""
    return FakeAgent


@pytest.fixture
def make_transport():
    """Factory for ``FakeTransport`` instances."""
    return FakeTransport
