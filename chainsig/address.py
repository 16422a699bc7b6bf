"""Bitcoin network constants and single-key address encoding.

Only the two script types a descriptor wallet hands out for a single key are
covered: legacy P2PKH (Base58Check) and native segwit v0 P2WPKH (bech32).
"""

import hashlib
from enum import Enum

import base58
import bech32

from .errors import ChainsigError


class AddressError(ChainsigError):
    """Error encoding an address or script."""


class Network(str, Enum):
    """Bitcoin networks and their encoding parameters."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"

    @property
    def p2pkh_version(self) -> bytes:
        return b"\x00" if self is Network.MAINNET else b"\x6f"

    @property
    def bech32_hrp(self) -> str:
        if self is Network.MAINNET:
            return "bc"
        if self is Network.REGTEST:
            return "bcrt"
        return "tb"

    @property
    def xprv_prefix(self) -> str:
        """Text prefix of a Base58Check extended private key on this network."""
        return "xprv" if self is Network.MAINNET else "tprv"

    @property
    def xprv_version(self) -> bytes:
        return bytes.fromhex("0488ade4") if self is Network.MAINNET else bytes.fromhex("04358394")

    @property
    def xpub_version(self) -> bytes:
        return bytes.fromhex("0488b21e") if self is Network.MAINNET else bytes.fromhex("043587cf")


class ScriptType(str, Enum):
    """Script types a descriptor wallet derives single-key addresses for."""

    LEGACY = "legacy"
    SEGWIT = "segwit"

    @property
    def descriptor_marker(self) -> str:
        """Descriptor function name for this script type."""
        return "pkh" if self is ScriptType.LEGACY else "wpkh"


def hash160(data: bytes) -> bytes:
    """HASH160: SHA256 followed by RIPEMD160."""
    return hashlib.new("ripemd160", hashlib.sha256(data).digest()).digest()


def p2pkh_script(pubkey: bytes) -> bytes:
    """Return the P2PKH scriptPubKey for a public key.

    OP_DUP OP_HASH160 <20-byte hash> OP_EQUALVERIFY OP_CHECKSIG
    """
    return b"\x76\xa9\x14" + hash160(pubkey) + b"\x88\xac"


def p2wpkh_script(pubkey: bytes) -> bytes:
    """Return the P2WPKH scriptPubKey (OP_0 <20-byte hash>) for a compressed key."""
    _require_compressed(pubkey)
    return b"\x00\x14" + hash160(pubkey)


def p2pkh_address(pubkey: bytes, network: Network) -> str:
    """Encode the Base58Check P2PKH address for a public key."""
    return base58.b58encode_check(network.p2pkh_version + hash160(pubkey)).decode("ascii")


def p2wpkh_address(pubkey: bytes, network: Network) -> str:
    """Encode the bech32 v0 P2WPKH address for a compressed public key."""
    _require_compressed(pubkey)
    address = bech32.encode(network.bech32_hrp, 0, hash160(pubkey))
    if address is None:
        raise AddressError("bech32 encoding failed")
    return address


def address_for(pubkey: bytes, script_type: ScriptType, network: Network) -> str:
    """Return the address a wallet hands out for ``pubkey`` with the given script type."""
    if script_type is ScriptType.SEGWIT:
        return p2wpkh_address(pubkey, network)
    return p2pkh_address(pubkey, network)


def script_for(pubkey: bytes, script_type: ScriptType) -> bytes:
    """Return the scriptPubKey for ``pubkey`` with the given script type."""
    if script_type is ScriptType.SEGWIT:
        return p2wpkh_script(pubkey)
    return p2pkh_script(pubkey)


def _require_compressed(pubkey: bytes) -> None:
    if len(pubkey) != 33 or pubkey[0] not in (2, 3):
        raise AddressError(f"Segwit requires a 33-byte compressed public key, got {len(pubkey)} bytes")
