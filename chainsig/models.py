"""Data classes for chainsig.

This module contains dataclasses and structured types used across the codebase.
"""

from dataclasses import dataclass, field

from .path_utils import DerivationPath
from .types import BigRHex, PubkeyHex, ScalarHex


@dataclass(frozen=True, slots=True)
class DerivedKeyPair:
    """A child key pair derived from a master key.

    Attributes:
        private_key: The 32-byte private scalar
        public_key: The 33-byte compressed public key
        chain_code: The child chain code
        path: The path the key was derived along

    """

    private_key: bytes = field(repr=False)
    public_key: bytes
    chain_code: bytes = field(repr=False)
    path: DerivationPath

    @property
    def public_key_hex(self) -> PubkeyHex:
        return PubkeyHex(self.public_key.hex())


@dataclass(frozen=True, slots=True)
class SignatureComponents:
    """The split signature components found in a signer's response.

    Attributes:
        big_r: Hex-encoded compressed nonce point R
        s: Hex-encoded scalar s
        recovery_id: Recovery id when the signer reports one

    """

    big_r: BigRHex
    s: ScalarHex
    recovery_id: int | None = None


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """A node-reported address whose key material has been verified.

    Attributes:
        address: The verified address
        script_pubkey: The scriptPubKey reported by the node
        private_key: The derived 32-byte private scalar
        public_key: The derived compressed public key
        wpkh: HASH160 of the public key (the witness program for P2WPKH)

    """

    address: str
    script_pubkey: bytes
    private_key: bytes = field(repr=False)
    public_key: bytes
    wpkh: bytes
