# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Identity verifier: every trusted result must be signed by its claimed address.

A result that fails here is downgraded to the same sentinel used for
transport failures, so a compromised agent is never treated better than an
offline one. Verification faults never escape this boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..identity import Ed25519SignatureVerifier, SignatureVerifier
from .enums import FailureReason
from .models import AgentResult

logger = logging.getLogger(__name__)


class IdentityVerifier:
    """Checks result signatures with an injected ``SignatureVerifier``."""

    def __init__(self, verifier: SignatureVerifier | None = None):
        self.verifier = verifier or Ed25519SignatureVerifier()

    def check(self, result: AgentResult) -> AgentResult:
        """Return ``result`` unchanged if trusted, otherwise its sentinel form."""
        if not result.is_ok:
            return result

        if result.expected_address and result.agent_address != result.expected_address:
            logger.warning(
                f"Agent at {result.endpoint} claimed {result.agent_address}, "
                f"expected {result.expected_address}; rejecting result"
            )
            return result.downgrade(FailureReason.ADDRESS_MISMATCH, attribute_to=result.expected_address)

        try:
            valid = self.verifier.verify(result.agent_address, result.payload.encode("utf-8"), result.signature)
        except Exception as e:  # Intentionally broad: injected verifiers must not break the pass
            logger.warning(f"Signature check for {result.agent_address} raised {e!r}; rejecting result")
            valid = False

        if not valid:
            logger.warning(f"Invalid signature from {result.agent_address}; rejecting result")
            return result.downgrade(FailureReason.BAD_SIGNATURE)
        return result

    def check_all(self, results: Iterable[AgentResult]) -> list[AgentResult]:
        """Check every result, preserving order.

        An address votes at most once per dispatch: the first trusted result
        it signed is kept and any later one (a replayed response served from
        another endpoint) becomes a sentinel charged to that endpoint.
        """
        checked: list[AgentResult] = []
        seen: set[str] = set()
        for result in results:
            result = self.check(result)
            if result.is_ok:
                if result.agent_address in seen:
                    logger.warning(
                        f"Agent {result.agent_address} already answered; "
                        f"rejecting duplicate result from {result.endpoint}"
                    )
                    result = result.downgrade(FailureReason.DUPLICATE_IDENTITY, attribute_to=result.endpoint)
                else:
                    seen.add(result.agent_address)
            checked.append(result)
        return checked
