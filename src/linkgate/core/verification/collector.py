# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Agent result collector.

Dispatches the same task to every endpoint at once and gathers what comes
back. Each call has its own timeout, so one hanging agent cannot hold up the
others. Nothing here raises on an agent's behalf: timeouts, transport errors,
non-200 responses and malformed bodies all become sentinel results, which the
consensus stage counts exactly like answers that fail later checks.

No retries happen at this layer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

import aiohttp

from .constants import DEFAULT_AGENT_TIMEOUT_MS
from .enums import FailureReason
from .models import AgentEndpoint, AgentResult

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Wall clock in milliseconds since the epoch."""
    return int(time.time() * 1000)


class AgentTransportError(Exception):
    """Raised by a transport when an agent call fails in a known way."""

    def __init__(self, message: str, reason: FailureReason = FailureReason.TRANSPORT, status: int | None = None):
        super().__init__(message)
        self.reason = reason
        self.status = status


@runtime_checkable
class AgentTransport(Protocol):
    """Raw transport to one agent endpoint."""

    async def fetch(self, endpoint: AgentEndpoint, task_id: str, timeout_s: float) -> dict[str, Any]:
        """Return the decoded JSON body of the agent's answer."""
        ...


class AiohttpAgentTransport:
    """``GET <endpoint>?taskId=<id>`` over aiohttp.

    A shared ``aiohttp.ClientSession`` may be injected; otherwise each call
    opens and closes its own session.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session

    async def fetch(self, endpoint: AgentEndpoint, task_id: str, timeout_s: float) -> dict[str, Any]:
        if self._session is not None:
            return await self._get(self._session, endpoint, task_id, timeout_s)
        async with aiohttp.ClientSession() as session:
            return await self._get(session, endpoint, task_id, timeout_s)

    async def _get(
        self,
        session: aiohttp.ClientSession,
        endpoint: AgentEndpoint,
        task_id: str,
        timeout_s: float,
    ) -> dict[str, Any]:
        try:
            async with session.get(
                endpoint.url,
                params={"taskId": task_id},
                timeout=aiohttp.ClientTimeout(total=timeout_s),
            ) as response:
                if response.status != 200:
                    raise AgentTransportError(
                        f"Agent {endpoint.url} failed with status: {response.status}",
                        reason=FailureReason.HTTP_STATUS,
                        status=response.status,
                    )
                body = await response.json(content_type=None)
        except TimeoutError as e:
            # aiohttp.ServerTimeoutError is also a ClientError
            raise AgentTransportError(f"Agent {endpoint.url} timed out", FailureReason.TIMEOUT) from e
        except aiohttp.ContentTypeError as e:
            raise AgentTransportError(f"Agent {endpoint.url} returned non-JSON body", FailureReason.MALFORMED) from e
        except ValueError as e:
            raise AgentTransportError(f"Agent {endpoint.url} returned invalid JSON", FailureReason.MALFORMED) from e
        except aiohttp.ClientError as e:
            raise AgentTransportError(f"Agent {endpoint.url} unreachable: {e}") from e

        if not isinstance(body, dict):
            raise AgentTransportError(f"Agent {endpoint.url} returned a non-object body", FailureReason.MALFORMED)
        return body


def parse_agent_response(
    body: dict[str, Any],
    endpoint: AgentEndpoint,
    received_at: int,
) -> AgentResult:
    """Turn a decoded ``{agentAddress, result, signature, timestamp}`` body into a result."""
    payload = body.get("result")
    signature = body.get("signature")
    claimed = body.get("agentAddress") or endpoint.address or endpoint.url
    reported = body.get("timestamp")

    if not isinstance(payload, str) or not isinstance(signature, str) or not signature:
        return AgentResult.failed(endpoint.identity, received_at, FailureReason.MALFORMED, endpoint.url)
    if not isinstance(claimed, str):
        return AgentResult.failed(endpoint.identity, received_at, FailureReason.MALFORMED, endpoint.url)

    return AgentResult.ok(
        agent_address=claimed,
        payload=payload,
        signature=signature,
        timestamp=received_at,
        endpoint=endpoint.url,
        reported_timestamp=reported if isinstance(reported, int) and not isinstance(reported, bool) else None,
        expected_address=endpoint.address,
    )


class AgentResultCollector:
    """Concurrent dispatcher with a per-call timeout."""

    def __init__(
        self,
        transport: AgentTransport | None = None,
        timeout_ms: int = DEFAULT_AGENT_TIMEOUT_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.transport = transport or AiohttpAgentTransport()
        self.timeout_ms = timeout_ms
        self.clock = clock

    async def collect(self, task_id: str, endpoints: Sequence[AgentEndpoint]) -> list[AgentResult]:
        """Dispatch ``task_id`` to every endpoint.

        Returns:
            One result per endpoint, in arrival order.

        Cancelling the caller cancels every outstanding call; nothing that
        was already collected survives.
        """
        tasks = [asyncio.ensure_future(self._dispatch_one(task_id, endpoint)) for endpoint in endpoints]
        results: list[AgentResult] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                results.append(await next_done)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            logger.warning(f"Dispatch of task {task_id} cancelled; discarding {len(results)} partial result(s)")
            raise
        logger.info(f"Collected {len(results)} result(s) for task {task_id}")
        return results

    async def _dispatch_one(self, task_id: str, endpoint: AgentEndpoint) -> AgentResult:
        timeout_s = self.timeout_ms / 1000
        try:
            body = await asyncio.wait_for(self.transport.fetch(endpoint, task_id, timeout_s), timeout=timeout_s)
        except TimeoutError:
            logger.warning(f"Agent at {endpoint.url} timed out after {self.timeout_ms}ms")
            return AgentResult.failed(endpoint.identity, self.clock(), FailureReason.TIMEOUT, endpoint.url)
        except AgentTransportError as e:
            logger.warning(f"Agent at {endpoint.url} failed to respond: {e}")
            return AgentResult.failed(endpoint.identity, self.clock(), e.reason, endpoint.url)
        except Exception as e:  # Intentionally broad: any transport fault is a non-response
            logger.warning(f"Agent at {endpoint.url} failed to respond: {e!r}")
            return AgentResult.failed(endpoint.identity, self.clock(), FailureReason.TRANSPORT, endpoint.url)

        return parse_agent_response(body, endpoint, self.clock())
