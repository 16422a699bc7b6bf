"""Compact ECDSA signature assembly from MPC signer components.

The signer returns the nonce point ``R`` as a compressed point and ``s`` as a
scalar. The compact signature is ``x(R) || s``; the parity byte of ``R`` is not
part of it, but is kept alongside so that callers can recover the public key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coincurve import PublicKey
from coincurve.ecdsa import cdata_to_der, deserialize_compact

from .bip32 import SECP256K1_N
from .errors import ChainsigError
from .metrics import SIGNATURE_ERRORS_TOTAL, SIGNATURES_ASSEMBLED_TOTAL
from .types import SignatureHex

logger = logging.getLogger(__name__)

BIG_R_LENGTH = 33
SCALAR_LENGTH = 32
COMPACT_LENGTH = 64

_PARITY_PREFIXES = {0x02: 0, 0x03: 1}


class SignatureError(ChainsigError):
    """Error assembling or using a signature."""


class InvalidComponentLength(SignatureError):
    """A signature component decoded to the wrong number of bytes."""


class InvalidSignature(SignatureError):
    """Signature components are malformed or not a valid secp256k1 signature."""


@dataclass(frozen=True, slots=True)
class CompactSignature:
    """A 64-byte ``r || s`` ECDSA signature.

    Attributes:
        data: The 64 raw bytes
        parity: Y parity of the nonce point R (0 even, 1 odd) if known

    """

    data: bytes
    parity: int | None = None

    def __post_init__(self) -> None:
        if len(self.data) != COMPACT_LENGTH:
            raise InvalidComponentLength(
                f"Compact signature must be {COMPACT_LENGTH} bytes, got {len(self.data)}"
            )
        try:
            deserialize_compact(self.data)
        except Exception as e:
            raise InvalidSignature(f"Rejected by secp256k1: {e!r}") from e
        # libsecp256k1 accepts zero r or s in the compact encoding
        if not 0 < self.r < SECP256K1_N or not 0 < self.s < SECP256K1_N:
            raise InvalidSignature("Signature r and s must be in [1, n-1]")

    @property
    def r(self) -> int:
        return int.from_bytes(self.data[:32], "big")

    @property
    def s(self) -> int:
        return int.from_bytes(self.data[32:], "big")

    def to_bytes(self) -> bytes:
        return self.data

    def hex(self) -> SignatureHex:
        return SignatureHex(self.data.hex())

    def to_der(self) -> bytes:
        """Return the DER encoding of the signature."""
        return cdata_to_der(deserialize_compact(self.data))

    def is_low_s(self) -> bool:
        return self.s <= SECP256K1_N // 2

    def normalize(self) -> CompactSignature:
        """Return the equivalent low-s signature.

        Negating s flips the parity of the effective nonce point.
        """
        if self.is_low_s():
            return self
        s = SECP256K1_N - self.s
        parity = None if self.parity is None else self.parity ^ 1
        return CompactSignature(self.data[:32] + s.to_bytes(32, "big"), parity)

    def verify(self, pubkey: bytes, digest: bytes) -> bool:
        """Verify the signature over a 32-byte digest.

        High-s signatures are normalized first since libsecp256k1 only
        accepts the low-s form.
        """
        try:
            return PublicKey(pubkey).verify(self.normalize().to_der(), digest, hasher=None)
        except ValueError as e:
            raise InvalidSignature(f"Cannot verify signature: {e}") from e

    def recover_public_key(self, digest: bytes) -> bytes:
        """Recover the compressed signer public key from a 32-byte digest.

        Raises:
            SignatureError: If the parity of R is unknown
            InvalidSignature: If no public key can be recovered

        """
        if self.parity is None:
            raise SignatureError("Public key recovery needs the parity of R")

        recoverable = self.data + bytes([self.parity])
        try:
            pubkey = PublicKey.from_signature_and_message(recoverable, digest, hasher=None)
        except Exception as e:
            raise InvalidSignature(f"Public key recovery failed: {e}") from e
        return pubkey.format(compressed=True)


def _decode_hex(value: str, name: str) -> bytes:
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise InvalidSignature(f"{name} is not valid hex: {e}") from e


def assemble(big_r_hex: str, s_hex: str) -> CompactSignature:
    """Build a compact signature from the signer's ``big_r`` and ``s``.

    Args:
        big_r_hex: Compressed point R (33 bytes, hex)
        s_hex: Scalar s (32 bytes, hex)

    Returns:
        The validated compact signature

    Raises:
        InvalidComponentLength: If either component has the wrong length
        InvalidSignature: If the components are not hex, R has an unknown
            prefix, or the library rejects the signature

    """
    try:
        big_r = _decode_hex(big_r_hex, "big_r")
        s = _decode_hex(s_hex, "s")

        if len(big_r) != BIG_R_LENGTH:
            raise InvalidComponentLength(
                f"big_r must be {BIG_R_LENGTH} bytes, got {len(big_r)}"
            )
        if len(s) != SCALAR_LENGTH:
            raise InvalidComponentLength(f"s must be {SCALAR_LENGTH} bytes, got {len(s)}")

        parity = _PARITY_PREFIXES.get(big_r[0])
        if parity is None:
            raise InvalidSignature(f"big_r has unknown point prefix 0x{big_r[0]:02x}")

        signature = CompactSignature(big_r[1:] + s, parity)
    except InvalidComponentLength:
        SIGNATURE_ERRORS_TOTAL.labels(error_type="invalid_length").inc()
        raise
    except InvalidSignature:
        SIGNATURE_ERRORS_TOTAL.labels(error_type="invalid_signature").inc()
        raise

    SIGNATURES_ASSEMBLED_TOTAL.inc()
    logger.debug(f"Assembled signature r={signature.data[:8].hex()}...")
    return signature
