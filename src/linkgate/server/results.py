# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Result providers for the reference agent.

A provider answers one task with a plain string. The sports provider reads
the latest event from TheSportsDB; when the upstream source is unavailable it
returns a fixed fallback string, so independent agents can still agree.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_S = 8.0


@runtime_checkable
class ResultProvider(Protocol):
    async def get_result(self, task_id: str) -> str: ...


class StaticResultProvider:
    """Always answers with the same payload."""

    def __init__(self, result: str):
        self.result = result

    async def get_result(self, task_id: str) -> str:
        return self.result


def format_event(event: dict[str, Any]) -> str:
    """``"Home 2 - 1 Away (League, YYYY-MM-DD)"`` from a TheSportsDB event."""
    date = (event.get("dateEvent") or "")[:10]
    return (
        f"{event['strHomeTeam']} {event['intHomeScore']} - {event['intAwayScore']} "
        f"{event['strAwayTeam']} ({event.get('strLeague', '')}, {date})"
    )


class SportsResultProvider:
    """Latest football result from TheSportsDB, with a deterministic fallback."""

    def __init__(
        self,
        url: str,
        fallback: str,
        timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url = url
        self.fallback = fallback
        self.timeout_s = timeout_s
        self._session = session

    async def get_result(self, task_id: str) -> str:
        try:
            if self._session is not None:
                event = await self._fetch_event(self._session)
            else:
                async with aiohttp.ClientSession() as session:
                    event = await self._fetch_event(session)
            result = format_event(event)
        except (aiohttp.ClientError, TimeoutError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Upstream fetch for task {task_id} failed ({e!r}); using fallback result")
            return self.fallback

        logger.info(f"Fetched result for task {task_id}: {result!r}")
        return result

    async def _fetch_event(self, session: aiohttp.ClientSession) -> dict[str, Any]:
        async with session.get(self.url, timeout=aiohttp.ClientTimeout(total=self.timeout_s)) as response:
            if response.status != 200:
                raise ValueError(f"upstream returned status {response.status}")
            body = await response.json(content_type=None)

        events = body.get("event") if isinstance(body, dict) else None
        if not events:
            raise ValueError("no event data in upstream response")
        return events[0]
