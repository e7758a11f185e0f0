# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Reference agent HTTP server.

Answers ``GET /predict?taskId=<id>`` with a signed result:

    {"agentAddress": ..., "result": ..., "signature": ..., "timestamp": ...}

The signature covers the UTF-8 bytes of ``result`` and verifies against
``agentAddress`` with ``linkgate.core.identity.verify_signature``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..core.config import get_config
from ..core.exceptions import ConfigException
from ..core.identity import Ed25519Signer, sign_result
from ..core.verification import now_ms
from .errors import missing_field_error
from .results import ResultProvider, SportsResultProvider

logger = logging.getLogger(__name__)


def create_agent_app(
    signer: Ed25519Signer,
    provider: ResultProvider,
    clock: Callable[[], int] = now_ms,
) -> Starlette:
    """Create the Starlette ASGI application for one agent identity."""

    async def predict_endpoint(request: Request) -> JSONResponse:
        task_id = request.query_params.get("taskId")
        if not task_id:
            return missing_field_error("taskId")

        logger.info(f"Received task: taskId={task_id}")
        result = await provider.get_result(task_id)
        signature = sign_result(result, signer)

        return JSONResponse(
            {
                "agentAddress": signer.address,
                "result": result,
                "signature": signature,
                "timestamp": clock(),
            }
        )

    async def health_endpoint(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "agent": signer.address})

    routes = [
        Route("/predict", predict_endpoint, methods=["GET"]),
        Route("/health", health_endpoint, methods=["GET"]),
    ]
    return Starlette(routes=routes)


def create_app_from_settings() -> Starlette:
    """Build the reference agent from ``LINKGATE_AGENT_*`` settings.

    Raises:
        ConfigException: No agent private key is configured.
    """
    settings = get_config()
    if not settings.agent_private_key:
        raise ConfigException(
            "Agent private key is not set", missing_vars=["LINKGATE_AGENT_PRIVATE_KEY"]
        )

    signer = Ed25519Signer.from_private_key_hex(settings.agent_private_key)
    provider = SportsResultProvider(settings.agent_results_url, settings.agent_fallback_result)
    logger.info(f"Agent identity: {signer.address}")
    return create_agent_app(signer, provider)


def run(host: str | None = None, port: int | None = None) -> None:
    """Run the reference agent using uvicorn."""
    import uvicorn

    settings = get_config()
    host = host or settings.agent_host
    port = port or settings.agent_port
    app = create_app_from_settings()

    logger.info(f"Starting LinkGate agent on {host}:{port}")
    logger.info(f"Predict: http://{host}:{port}/predict?taskId=test")

    uvicorn.run(app, host=host, port=port, log_level="info")
