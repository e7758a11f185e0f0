"""Tests for the identity verification stage."""

from __future__ import annotations

from unittest.mock import MagicMock

from linkgate.core.identity import sign_result
from linkgate.core.verification import (
    FAILURE_SENTINEL,
    AgentResult,
    FailureReason,
    IdentityVerifier,
    ResultStatus,
)


def _signed(signer, payload: str = "Brazil 3 - 0 Germany", **kwargs) -> AgentResult:
    return AgentResult.ok(signer.address, payload, sign_result(payload, signer), timestamp=1, **kwargs)


class TestIdentityVerifier:
    def test_valid_signature_passes_unchanged(self, signer):
        result = _signed(signer)
        assert IdentityVerifier().check(result) is result

    def test_tampered_payload_downgraded(self, signer):
        result = _signed(signer)
        tampered = AgentResult.ok(signer.address, "Brazil 0 - 3 Germany", result.signature, timestamp=1)

        checked = IdentityVerifier().check(tampered)
        assert checked.status is ResultStatus.FAILED
        assert checked.payload == FAILURE_SENTINEL
        assert checked.failure_reason is FailureReason.BAD_SIGNATURE
        assert checked.agent_address == signer.address

    def test_signature_of_other_agent(self, signers):
        forged = AgentResult.ok(signers[1].address, "x", sign_result("x", signers[0]), timestamp=1)
        assert not IdentityVerifier().check(forged).is_ok

    def test_malformed_address(self, signer):
        result = AgentResult.ok("not-an-address", "x", sign_result("x", signer), timestamp=1)
        assert IdentityVerifier().check(result).failure_reason is FailureReason.BAD_SIGNATURE

    def test_address_mismatch_attributed_to_registered_identity(self, signers):
        result = _signed(signers[0], expected_address=signers[1].address, endpoint="http://b")

        checked = IdentityVerifier().check(result)
        assert checked.failure_reason is FailureReason.ADDRESS_MISMATCH
        assert checked.agent_address == signers[1].address

    def test_sentinel_passes_through(self):
        failed = AgentResult.failed("http://a", 1, FailureReason.TIMEOUT)
        assert IdentityVerifier().check(failed) is failed

    def test_injected_verifier(self, signer):
        verifier = MagicMock()
        verifier.verify.return_value = True
        result = AgentResult.ok("anyone", "x", "sig", timestamp=1)

        assert IdentityVerifier(verifier).check(result).is_ok
        verifier.verify.assert_called_once_with("anyone", b"x", "sig")

    def test_verifier_exception_contained(self):
        verifier = MagicMock()
        verifier.verify.side_effect = RuntimeError("hsm offline")
        result = AgentResult.ok("anyone", "x", "sig", timestamp=1)

        assert IdentityVerifier(verifier).check(result).failure_reason is FailureReason.BAD_SIGNATURE

    def test_check_all_preserves_order(self, signers):
        results = [_signed(s, payload=f"r{i}") for i, s in enumerate(signers)]
        results.insert(1, AgentResult.failed("http://x", 1, FailureReason.TIMEOUT))

        checked = IdentityVerifier().check_all(results)
        assert [r.agent_address for r in checked] == [r.agent_address for r in results]

    def test_replayed_answer_votes_once(self, signers):
        """A signed answer served again from another endpoint is not a second vote."""
        original = _signed(signers[0], payload="X", endpoint="http://a")
        replayed = AgentResult.ok(signers[0].address, "X", original.signature, timestamp=2, endpoint="http://c")
        results = [original, _signed(signers[1], payload="Y", endpoint="http://b"), replayed]

        checked = IdentityVerifier().check_all(results)

        assert checked[0] is original
        assert checked[1].is_ok
        assert checked[2].failure_reason is FailureReason.DUPLICATE_IDENTITY
        assert checked[2].agent_address == "http://c"

    def test_duplicate_after_rejected_result_is_kept(self, signers):
        """Only trusted results claim an address."""
        forged = AgentResult.ok(signers[0].address, "X", "AAAA", timestamp=1, endpoint="http://a")
        genuine = _signed(signers[0], payload="X", endpoint="http://b")

        checked = IdentityVerifier().check_all([forged, genuine])

        assert checked[0].failure_reason is FailureReason.BAD_SIGNATURE
        assert checked[1] is genuine
