# SPDX-License-Identifier: MIT
# Copyright (c) 2026 LinkGate Contributors

"""Keygen command: create a new agent identity."""

from __future__ import annotations

import argparse

from ...core.identity import Ed25519Signer
from ..output import output_result


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the keygen command on the CLI parser."""
    keygen_parser = subparsers.add_parser("keygen", help="Generate an Ed25519 agent identity")
    keygen_parser.set_defaults(func=cmd_keygen)


def cmd_keygen(args: argparse.Namespace) -> int:
    """Print a fresh private key and its agent address."""
    signer = Ed25519Signer.generate()
    output_result(
        {"address": signer.address, "private_key": signer.private_key_hex},
        args.output,
    )
    return 0
