# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Ed25519 agent identities.

An agent's address is its public key in multibase form (base58btc with the
Ed25519 multicodec prefix, as in did:key), so a signature can be checked
against the address alone without any registry lookup.

Examples:
- z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

# =============================================================================
# CONSTANTS
# =============================================================================

# Multibase prefix for base58btc encoding
MULTIBASE_BASE58BTC = "z"

# Multicodec prefix for Ed25519 public key (0xed01)
MULTICODEC_ED25519_PUB = bytes([0xED, 0x01])

ED25519_PUBLIC_KEY_LENGTH = 32
ED25519_SIGNATURE_LENGTH = 64


# =============================================================================
# BASE58 ENCODING
# =============================================================================

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(data: bytes) -> str:
    """Encode bytes to base58 string."""
    num = int.from_bytes(data, "big")
    result = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    # Leading zero bytes map to leading '1's
    for byte in data:
        if byte == 0:
            result = BASE58_ALPHABET[0] + result
        else:
            break

    return result or BASE58_ALPHABET[0]


def base58_decode(string: str) -> bytes:
    """Decode base58 string to bytes.

    Raises:
        ValueError: On characters outside the base58 alphabet.
    """
    num = 0
    for char in string:
        index = BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58 character: {char!r}")
        num = num * 58 + index

    result = []
    while num > 0:
        num, remainder = divmod(num, 256)
        result.insert(0, remainder)

    for char in string:
        if char == BASE58_ALPHABET[0]:
            result.insert(0, 0)
        else:
            break

    return bytes(result)


def multibase_encode(data: bytes) -> str:
    """Encode bytes to multibase (base58btc)."""
    return MULTIBASE_BASE58BTC + base58_encode(data)


def multibase_decode(string: str) -> bytes:
    """Decode multibase string to bytes."""
    if not string or not string.startswith(MULTIBASE_BASE58BTC):
        raise ValueError(f"Unsupported multibase encoding: {string[:1]!r}")
    return base58_decode(string[1:])


# =============================================================================
# ADDRESSES
# =============================================================================


def address_from_public_key(public_key_bytes: bytes) -> str:
    """Agent address for a raw 32-byte Ed25519 public key."""
    if len(public_key_bytes) != ED25519_PUBLIC_KEY_LENGTH:
        raise ValueError(f"Ed25519 public key must be {ED25519_PUBLIC_KEY_LENGTH} bytes")
    return multibase_encode(MULTICODEC_ED25519_PUB + public_key_bytes)


def public_key_from_address(address: str) -> bytes:
    """Extract raw public key bytes from an agent address.

    Raises:
        ValueError: If the address is not a multibase Ed25519 key.
    """
    decoded = multibase_decode(address)
    if not decoded.startswith(MULTICODEC_ED25519_PUB):
        raise ValueError("Address is not an Ed25519 multicodec key")
    key = decoded[len(MULTICODEC_ED25519_PUB) :]
    if len(key) != ED25519_PUBLIC_KEY_LENGTH:
        raise ValueError(f"Ed25519 public key must be {ED25519_PUBLIC_KEY_LENGTH} bytes")
    return key


# =============================================================================
# SIGNING
# =============================================================================


@dataclass
class Ed25519Signer:
    """Signs result payloads on behalf of one agent identity."""

    private_key: Ed25519PrivateKey

    @property
    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @property
    def address(self) -> str:
        return address_from_public_key(self.public_key_bytes)

    @property
    def private_key_hex(self) -> str:
        """Private key seed as hex string (for secure storage)."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        ).hex()

    def sign(self, message: bytes) -> str:
        """Sign ``message`` and return the base64 signature."""
        return base64.b64encode(self.private_key.sign(message)).decode("ascii")

    @classmethod
    def generate(cls) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_key_hex(cls, hex_string: str) -> Ed25519Signer:
        """Create a signer from a stored 32-byte seed (hex, optional 0x)."""
        if hex_string.startswith(("0x", "0X")):
            hex_string = hex_string[2:]
        seed = bytes.fromhex(hex_string)
        return cls(Ed25519PrivateKey.from_private_bytes(seed))


def sign_result(payload: str, signer: Ed25519Signer) -> str:
    """Sign a result payload (UTF-8) and return the base64 signature."""
    return signer.sign(payload.encode("utf-8"))


def verify_signature(address: str, message: bytes, signature: str) -> bool:
    """Check that ``signature`` over ``message`` was produced by ``address``.

    Never raises: malformed addresses or signatures simply fail verification.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(public_key_from_address(address))
        raw_signature = base64.b64decode(signature, validate=True)
        if len(raw_signature) != ED25519_SIGNATURE_LENGTH:
            return False
        public_key.verify(raw_signature, message)
        return True
    except (InvalidSignature, ValueError, TypeError, binascii.Error):
        return False


@runtime_checkable
class SignatureVerifier(Protocol):
    """Injected capability: verify(address, message, signature) -> bool."""

    def verify(self, address: str, message: bytes, signature: str) -> bool: ...


class Ed25519SignatureVerifier:
    """Default verifier for multibase Ed25519 addresses."""

    def verify(self, address: str, message: bytes, signature: str) -> bool:
        return verify_signature(address, message, signature)
