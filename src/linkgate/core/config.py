# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Core configuration - centralized config for the linkgate package.

Two layers:

- ``CoreSettings``: process-wide settings from ``LINKGATE_*`` environment
  variables (or ``.env``). Logging, database, roles, collector timeouts and
  the reference agent all read from here.
- ``CycleConfig``: the per-cycle JSON document handed to the orchestrator by
  the scheduling trigger (schedule, agent endpoints, escrow/registry
  addresses, task id, SLA).

Usage:
    from linkgate.core.config import get_config
    config = get_config()
    timeout_ms = config.agent_timeout_ms
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException
from .verification.constants import (
    DEFAULT_AGENT_TIMEOUT_MS,
    DEFAULT_MAX_RESPONSE_TIME_MS,
    DEFAULT_MIN_AGREEING_AGENTS,
    DEFAULT_MIN_CONSENSUS_FRACTION,
)
from .verification.models import SLA


class CoreSettings(BaseSettings):
    """Core configuration settings for LinkGate.

    Settings can be configured via environment variables with the
    LINKGATE_ prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="LINKGATE_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="LINKGATE_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="LINKGATE_LOG_FILE",
    )

    # ==========================================================================
    # DATABASE SETTINGS (postgres store backend)
    # ==========================================================================

    db_host: str = Field(
        default="localhost",
        description="Database host",
        validation_alias="LINKGATE_DB_HOST",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
        validation_alias="LINKGATE_DB_PORT",
    )
    db_name: str = Field(
        default="linkgate",
        description="Database name",
        validation_alias="LINKGATE_DB_NAME",
    )
    db_user: str = Field(
        default="linkgate",
        description="Database user",
        validation_alias="LINKGATE_DB_USER",
    )
    db_password: str = Field(
        default="",
        description="Database password",
        validation_alias="LINKGATE_DB_PASSWORD",
    )
    db_pool_min: int = Field(
        default=1,
        description="Minimum pool connections",
        validation_alias="LINKGATE_DB_POOL_MIN",
    )
    db_pool_max: int = Field(
        default=10,
        description="Maximum pool connections",
        validation_alias="LINKGATE_DB_POOL_MAX",
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a pooled connection",
        validation_alias="LINKGATE_DB_POOL_TIMEOUT",
    )

    # ==========================================================================
    # STORE / ROLE SETTINGS
    # ==========================================================================

    store_backend: str = Field(
        default="memory",
        description="Key-value store backend: 'memory' or 'postgres'",
        validation_alias="LINKGATE_STORE_BACKEND",
    )
    orchestrator_address: str = Field(
        default="orchestrator",
        description="Identity allowed to settle escrow and record outcomes",
        validation_alias="LINKGATE_ORCHESTRATOR_ADDRESS",
    )

    # ==========================================================================
    # COLLECTOR SETTINGS
    # ==========================================================================

    agent_timeout_ms: int = Field(
        default=DEFAULT_AGENT_TIMEOUT_MS,
        description="Per-call timeout for agent dispatch in milliseconds",
        validation_alias="LINKGATE_AGENT_TIMEOUT_MS",
    )

    # ==========================================================================
    # REFERENCE AGENT SETTINGS
    # ==========================================================================

    agent_private_key: str | None = Field(
        default=None,
        description="Ed25519 private key hex for the reference agent",
        validation_alias="LINKGATE_AGENT_PRIVATE_KEY",
    )
    agent_host: str = Field(
        default="127.0.0.1",
        description="Reference agent bind host",
        validation_alias="LINKGATE_AGENT_HOST",
    )
    agent_port: int = Field(
        default=4000,
        description="Reference agent port",
        validation_alias="LINKGATE_AGENT_PORT",
    )
    agent_results_url: str = Field(
        default="https://www.thesportsdb.com/api/v1/json/123/searchevents.php?e=Napoli_vs_Chelsea",
        description="Upstream source the reference agent reports on",
        validation_alias="LINKGATE_AGENT_RESULTS_URL",
    )
    agent_fallback_result: str = Field(
        default="Lions 2 - 1 Tigers (Simulated League, 2026-02-23)",
        description="Deterministic answer used when the upstream source is unavailable",
        validation_alias="LINKGATE_AGENT_FALLBACK_RESULT",
    )

    @field_validator("store_backend")
    @classmethod
    def _check_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "postgres"):
            raise ValueError(f"unsupported store backend: {v}")
        return v

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def database_url(self) -> str:
        """Construct database URL."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def connection_params(self) -> dict:
        """Get database connection parameters dict."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None


# ==========================================================================
# PER-CYCLE CONFIG
# ==========================================================================


class CycleConfig(BaseModel):
    """Configuration for one verification cycle.

    Accepts the camelCase keys used by the scheduling trigger
    (``agentEndpoints``, ``maxResponseTimeMs``...) as well as field names.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    schedule: str = Field(default="*/30 * * * * *", description="Cron expression of the external trigger")
    agent_endpoints: list[str] = Field(default_factory=list, alias="agentEndpoints")
    escrow_address: str = Field(default="", alias="escrowAddress")
    registry_address: str = Field(default="", alias="registryAddress")
    task_id: str = Field(alias="taskId", min_length=1)
    max_response_time_ms: int = Field(default=DEFAULT_MAX_RESPONSE_TIME_MS, alias="maxResponseTimeMs", gt=0)
    min_consensus_fraction: float = Field(
        default=DEFAULT_MIN_CONSENSUS_FRACTION, alias="minConsensusFraction", gt=0.0, le=1.0
    )
    min_agreeing_agents: int = Field(default=DEFAULT_MIN_AGREEING_AGENTS, alias="minAgreeingAgents", ge=1)
    agent_timeout_ms: int | None = Field(default=None, alias="agentTimeoutMs", gt=0)

    @field_validator("schedule")
    @classmethod
    def _check_schedule(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("schedule must not be empty")
        return v.strip()

    def sla(self) -> SLA:
        """SLA constraints for the consensus stage."""
        return SLA(
            max_response_time_ms=self.max_response_time_ms,
            min_consensus_fraction=self.min_consensus_fraction,
            min_agreeing_agents=self.min_agreeing_agents,
        )


def parse_cycle_config(data: dict[str, Any]) -> CycleConfig:
    """Validate a cycle config mapping.

    Raises:
        ConfigException: If the mapping does not describe a valid cycle.
    """
    try:
        return CycleConfig.model_validate(data)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors() if err["type"] == "missing"]
        raise ConfigException(f"Invalid cycle config: {e.error_count()} error(s)", missing_vars=missing) from e


def load_cycle_config(path: str | Path) -> CycleConfig:
    """Load and validate a cycle config JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigException(f"Cycle config not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigException(f"Cycle config is not valid JSON: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigException(f"Cycle config must be a JSON object: {path}")
    return parse_cycle_config(data)
