"""Type definitions for chainsig.

This module contains NewType definitions for the hex and text encodings that
flow between the node-facing inputs and the core.
"""

from typing import NewType

PubkeyHex = NewType("PubkeyHex", str)
"""Hex-encoded compressed secp256k1 public key (66 characters)."""

BigRHex = NewType("BigRHex", str)
"""Hex-encoded compressed nonce point R (66 characters, 02/03 prefix)."""

ScalarHex = NewType("ScalarHex", str)
"""Hex-encoded 32-byte scalar (64 characters)."""

SignatureHex = NewType("SignatureHex", str)
"""Hex-encoded 64-byte compact ECDSA signature (128 characters)."""
