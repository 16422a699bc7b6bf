"""BIP32 extended keys on secp256k1.

Extended private keys are parsed from and serialized to Base58Check. Child
derivation follows BIP32: hardened steps feed ``0x00 || k`` into HMAC-SHA512,
non-hardened steps feed the compressed parent public key.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

import base58
from coincurve import PrivateKey, PublicKey

from .address import Network, hash160
from .errors import ChainsigError
from .path_utils import HARDENED_OFFSET, DerivationPath, parse_path

logger = logging.getLogger(__name__)

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

XPRV_VERSIONS = {
    bytes.fromhex("0488ade4"): Network.MAINNET,
    bytes.fromhex("04358394"): Network.TESTNET,
}

EXTENDED_KEY_LENGTH = 78


class ExtendedKeyError(ChainsigError):
    """Error parsing an extended key or deriving a child from it."""


@dataclass(frozen=True, slots=True)
class ExtendedPrivateKey:
    """A BIP32 extended private key.

    Attributes:
        version: 4-byte serialization version (xprv or tprv)
        depth: Number of derivation steps from the root
        parent_fingerprint: First 4 bytes of the parent's HASH160
        child_number: Child number this key was derived at
        chain_code: 32-byte chain code
        private_key: 32-byte private scalar

    """

    version: bytes
    depth: int
    parent_fingerprint: bytes
    child_number: int
    chain_code: bytes
    private_key: bytes

    def __post_init__(self) -> None:
        if len(self.chain_code) != 32:
            raise ExtendedKeyError(f"Chain code must be 32 bytes, got {len(self.chain_code)}")
        if len(self.private_key) != 32:
            raise ExtendedKeyError(f"Private key must be 32 bytes, got {len(self.private_key)}")
        if not 0 < int.from_bytes(self.private_key, "big") < SECP256K1_N:
            raise ExtendedKeyError("Private key is outside the secp256k1 scalar range")

    def __repr__(self) -> str:
        return (
            f"ExtendedPrivateKey(depth={self.depth}, "
            f"fingerprint={self.fingerprint.hex()}, child_number={self.child_number})"
        )

    @classmethod
    def from_string(cls, text: str) -> ExtendedPrivateKey:
        """Parse a Base58Check extended private key (xprv... / tprv...)."""
        try:
            payload = base58.b58decode_check(text)
        except ValueError as e:
            raise ExtendedKeyError(f"Invalid Base58Check encoding: {e}") from e

        if len(payload) != EXTENDED_KEY_LENGTH:
            raise ExtendedKeyError(
                f"Extended key payload must be {EXTENDED_KEY_LENGTH} bytes, got {len(payload)}"
            )

        version = payload[0:4]
        if version not in XPRV_VERSIONS:
            raise ExtendedKeyError(f"Not an extended private key version: {version.hex()}")

        if payload[45] != 0:
            raise ExtendedKeyError("Extended private key must have a zero pad byte before the key")

        depth = payload[4]
        parent_fingerprint = payload[5:9]
        child_number = int.from_bytes(payload[9:13], "big")
        if depth == 0 and (parent_fingerprint != b"\x00" * 4 or child_number != 0):
            raise ExtendedKeyError(
                "Master key (depth 0) must have a zero parent fingerprint and child number"
            )

        return cls(
            version=version,
            depth=depth,
            parent_fingerprint=parent_fingerprint,
            child_number=child_number,
            chain_code=payload[13:45],
            private_key=payload[46:78],
        )

    @classmethod
    def from_seed(cls, seed: bytes, network: Network = Network.REGTEST) -> ExtendedPrivateKey:
        """Create the master extended key for a BIP32 seed."""
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(
            version=network.xprv_version,
            depth=0,
            parent_fingerprint=b"\x00" * 4,
            child_number=0,
            chain_code=digest[32:],
            private_key=digest[:32],
        )

    @property
    def network(self) -> Network:
        """Network family of the version bytes (testnet covers regtest and signet)."""
        return XPRV_VERSIONS[self.version]

    @property
    def public_key(self) -> bytes:
        """Compressed 33-byte public key."""
        return PrivateKey(self.private_key).public_key.format(compressed=True)

    @property
    def fingerprint(self) -> bytes:
        return hash160(self.public_key)[:4]

    def to_string(self) -> str:
        """Serialize to Base58Check."""
        return self._serialize(self.version, b"\x00" + self.private_key)

    def neuter(self) -> str:
        """Serialize the matching extended public key (xpub... / tpub...)."""
        xpub_version = (
            Network.MAINNET.xpub_version
            if self.network is Network.MAINNET
            else Network.TESTNET.xpub_version
        )
        return self._serialize(xpub_version, self.public_key)

    def _serialize(self, version: bytes, key_data: bytes) -> str:
        payload = (
            version
            + bytes([self.depth])
            + self.parent_fingerprint
            + self.child_number.to_bytes(4, "big")
            + self.chain_code
            + key_data
        )
        return base58.b58encode_check(payload).decode("ascii")

    def derive_child(self, child_number: int) -> ExtendedPrivateKey:
        """Derive the child at ``child_number`` (CKDpriv).

        Raises:
            ExtendedKeyError: If the child is invalid (I_L >= n or zero key),
                which BIP32 says to skip.

        """
        if not 0 <= child_number < 2**32:
            raise ExtendedKeyError(f"Child number out of range: {child_number}")
        if self.depth >= 255:
            raise ExtendedKeyError("Maximum derivation depth reached")

        if child_number >= HARDENED_OFFSET:
            data = b"\x00" + self.private_key + child_number.to_bytes(4, "big")
        else:
            data = self.public_key + child_number.to_bytes(4, "big")

        digest = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        tweak = int.from_bytes(digest[:32], "big")
        if tweak >= SECP256K1_N:
            raise ExtendedKeyError(f"Invalid child {child_number}: I_L >= curve order")

        child_key = (int.from_bytes(self.private_key, "big") + tweak) % SECP256K1_N
        if child_key == 0:
            raise ExtendedKeyError(f"Invalid child {child_number}: zero private key")

        return ExtendedPrivateKey(
            version=self.version,
            depth=self.depth + 1,
            parent_fingerprint=self.fingerprint,
            child_number=child_number,
            chain_code=digest[32:],
            private_key=child_key.to_bytes(32, "big"),
        )

    def derive_path(self, path: str | DerivationPath) -> ExtendedPrivateKey:
        """Derive along every step of ``path``."""
        key = self
        for step in parse_path(path):
            key = key.derive_child(step.child_number)
        return key


def derive_public_child(pubkey: bytes, chain_code: bytes, child_number: int) -> tuple[bytes, bytes]:
    """CKDpub: derive a non-hardened child public key from a parent public key.

    Args:
        pubkey: Compressed parent public key
        chain_code: Parent chain code
        child_number: Non-hardened child number

    Returns:
        Tuple of (compressed child public key, child chain code)

    Raises:
        ExtendedKeyError: For hardened indexes or invalid children

    """
    if not 0 <= child_number < HARDENED_OFFSET:
        raise ExtendedKeyError("Public derivation is only defined for non-hardened children")

    digest = hmac.new(chain_code, pubkey + child_number.to_bytes(4, "big"), hashlib.sha512).digest()
    if int.from_bytes(digest[:32], "big") >= SECP256K1_N:
        raise ExtendedKeyError(f"Invalid child {child_number}: I_L >= curve order")

    try:
        child = PublicKey(pubkey).add(digest[:32])
    except ValueError as e:
        raise ExtendedKeyError(f"Invalid child {child_number}: {e}") from e

    return child.format(compressed=True), digest[32:]
